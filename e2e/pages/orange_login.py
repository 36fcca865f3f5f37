# ============================================================================
#  File:    orange_login.py
#  Purpose: Page object for the OrangeHRM demo login screen
# ============================================================================
#
from automation.safe_actions import (
    safe_click,
    safe_input,
    safe_navigate_to_url,
    safe_wait_for_element_visible,
)
from reporting.run_context import StepResult


class OrangeLoginPage:
    """
    Each step returns a StepResult. A failed step has already been recorded
    with the reporter; the test passes it to reporter.check() to stop.
    """

    username = '//input[@name="username"]'
    password = '//input[@name="password"]'
    submit = '//button[@type="submit"]'
    dashboard_marker = '//h6[contains(@class,"topbar-header")]'
    error_toast = '//div[contains(@class,"orangehrm-login-error")]'
    user_menu_trigger = '//p[contains(@class,"oxd-userdropdown-name")]'
    dropdown_menu = '//ul[contains(@class,"oxd-dropdown-menu")]'
    logout_item = '//a[normalize-space(.)="Logout"]'

    def __init__(self, page, reporter):
        self.page = page
        self.reporter = reporter

    def open(self) -> StepResult:
        if not safe_navigate_to_url(self.page, "/"):
            return self.reporter.mark_failed("HOWEVER Failed to navigate to login page URL.")
        return StepResult.passed()

    def login(self, user: str, password: str) -> StepResult:
        if not safe_input(self.page, self.username, user):
            return self.reporter.mark_failed("HOWEVER Failed to input username.")
        if not safe_input(self.page, self.password, password):
            return self.reporter.mark_failed("HOWEVER Failed to input password.")
        if not safe_click(self.page, self.submit):
            return self.reporter.mark_failed("HOWEVER Failed to click login button.")
        return StepResult.passed()

    def is_on_dashboard(self) -> StepResult:
        if not safe_wait_for_element_visible(self.page, self.dashboard_marker):
            return self.reporter.mark_failed("Dashboard marker not visible.")
        return StepResult.passed()

    def has_error(self) -> StepResult:
        if not safe_wait_for_element_visible(self.page, self.error_toast):
            return self.reporter.mark_failed("Error toast not visible.")
        return StepResult.passed()

    def logout(self) -> StepResult:
        if not safe_click(self.page, self.user_menu_trigger):
            return self.reporter.mark_failed(f"User menu did not open: {self.reporter.last_error(self.page)}")
        if not safe_click(self.page, self.logout_item):
            return self.reporter.mark_failed("Logout item not clickable.")
        return StepResult.passed()
