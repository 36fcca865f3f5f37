# ============================================================================
# FILENAME: conftest.py
# PURPOSE: Root pytest configuration: loads the Discord reporting plugin and
#          the shared fixtures for e2e/, api/ and tests/.
# ============================================================================
#
pytest_plugins = ["reporting.plugin", "reporting.fixtures"]
