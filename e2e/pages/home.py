# Selectors for the sample homepage: playwright.dev in PROD, example.com elsewhere

PROD_CTA = "text=/Get started/i"
DEFAULT_CTA = "text=/More information/i"


def homepage_cta_selector(test_env: str) -> str:
    return PROD_CTA if test_env == "PROD" else DEFAULT_CTA
