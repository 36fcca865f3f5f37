"""Discord live reporting for pytest runs: header progress, thread posts and shutdown drain."""
