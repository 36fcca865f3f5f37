# Standard Playwright wait times, in milliseconds.
#
#   SHORT       5s   quick actions: clicks, field visibility
#   STANDARD   15s   navigation, login flows
#   LONG       30s   dashboards, slower components
#   EXTRA_LONG 45s   uploads, very slow pages


class Timeouts:
    SHORT = 5_000
    STANDARD = 15_000
    LONG = 30_000
    EXTRA_LONG = 45_000
