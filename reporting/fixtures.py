# ============================================================================
# File: fixtures.py
# Purpose: Per-test fixtures: active-test tracking, failure posts, the
#          reporter facade, the API session and the UI base URL.
# ============================================================================
# Section 1: Imports
# ============================================================================
#
from typing import List, NoReturn, Optional

import pytest
from loguru import logger

from automation.graphql_client import ApiSession
from automation.safe_actions import get_last_error
from reporting.config_manager import ReportingSettings
from reporting.plugin import get_session, phase_reports
from reporting.run_context import ReportingContext, StepResult
#
# ============================================================================
# Section 2: Reporter facade
# ============================================================================
# Class 2.1: Reporter
# Purpose: What tests and page objects talk to. mark_failed() only records;
#          check() is where a failed step stops the test.
# ============================================================================
#
class Reporter:

    def __init__(self, context: ReportingContext):
        self.context = context

    def mark_passed(self, reason: Optional[str] = None) -> StepResult:
        return self.context.mark_passed(reason)

    def mark_failed(self, reason: str) -> StepResult:
        return self.context.mark_failed(reason)

    def check(self, result: StepResult) -> StepResult:
        if not result:
            pytest.fail(result.reason, pytrace=False)
        return result

    def fail(self, reason: str) -> NoReturn:
        self.check(self.mark_failed(reason))
        raise AssertionError("unreachable")

    @staticmethod
    def last_error(page) -> str:
        return get_last_error(page)
#
# ============================================================================
# Section 3: Helpers
# ============================================================================
#
def display_title(item) -> str:
    """Docstring first line if there is one, else the test name."""
    doc = getattr(getattr(item, "obj", None), "__doc__", None)
    if doc and doc.strip():
        return doc.strip().splitlines()[0]
    return item.name


def failure_texts(report: pytest.TestReport) -> List[str]:
    """Crash message first, then the full failure text."""
    texts = []
    crash = getattr(report.longrepr, "reprcrash", None)
    if crash is not None and crash.message:
        texts.append(crash.message)
    if report.longreprtext:
        texts.append(report.longreprtext)
    return texts


def first_failed_report(item) -> Optional[pytest.TestReport]:
    reports = phase_reports(item)
    for when in ("setup", "call"):
        report = reports.get(when)
        if report is not None and report.failed:
            return report
    return None
#
# ============================================================================
# Section 4: Fixtures
# ============================================================================
#
@pytest.fixture(scope="session")
def reporting_settings(pytestconfig) -> ReportingSettings:
    return get_session(pytestconfig).settings


@pytest.fixture(scope="session")
def base_url(pytestconfig, reporting_settings):
    """--base-url wins, then the URL for TEST_ENV. None when neither is set."""
    return pytestconfig.getoption("base_url", default=None) or reporting_settings.base_url


@pytest.fixture(autouse=True)
def _reporting_test_hooks(request, reporting_settings):
    """
    Sets the active test for reporting helpers and, after the test, queues a
    single failure post: UI tests (those using `page`) get a screenshot,
    everything else gets an error snippet block.
    """
    context = get_session(request.config).context
    item = request.node
    title = display_title(item)
    is_ui = "page" in request.fixturenames

    page = None
    if is_ui:
        url = request.getfixturevalue("base_url") or reporting_settings.resolve_base_url()
        page = request.getfixturevalue("page")
        logger.info(f"🌐 Testing against: {reporting_settings.test_env} ({url})")

    context.set_current_test(item.nodeid, title, page)
    yield

    failed = first_failed_report(item)
    if failed is not None:
        texts = failure_texts(failed)
        if is_ui:
            context.report_ui_failure(item.nodeid, title, page, texts[0] if texts else None)
        else:
            context.report_api_failure(item.nodeid, title, texts)
    context.clear_current_test()


@pytest.fixture
def reporter(request) -> Reporter:
    return Reporter(get_session(request.config).context)


@pytest.fixture
def api(reporting_settings):
    """Fresh ApiSession per test, closed afterwards."""
    session = ApiSession(reporting_settings.resolve_api_base_url(), reporting_settings.graphql_path)
    yield session
    session.close()
