# ============================================================================
# File: plugin.py
# Purpose: Pytest plugin driving Discord live reporting for a test run.
# ============================================================================
# Section 1: Imports and configurations
# ============================================================================
#
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from loguru import logger

from automation.safe_actions import safe_screenshot
from reporting.config_manager import KNOWN_PROJECTS, ConfigManager, ReportingSettings
from reporting.error_handling import ConfigError, ReportingError
from reporting.log_setup import setup_logging
from reporting.progress import Outcome
from reporting.session import ReportingSession
from reporting.suite_setup import (
    clean_artifacts,
    extract_raw_grep,
    prettify_grep,
    send_suite_header,
    tag_pattern,
)

SESSION_KEY = pytest.StashKey[ReportingSession]()
PHASE_REPORTS_KEY = pytest.StashKey[Dict[str, pytest.TestReport]]()
#
# ============================================================================
# Section 2: Helpers
# ============================================================================
#
def is_controller(config) -> bool:
    """True for the main process; pytest-xdist workers carry workerinput."""
    return not hasattr(config, "workerinput")


def is_distributed(config) -> bool:
    return config.pluginmanager.has_plugin("dsession")


def get_session(config) -> ReportingSession:
    return config.stash[SESSION_KEY]


def get_settings(config) -> ReportingSettings:
    return get_session(config).settings


def phase_reports(item) -> Dict[str, pytest.TestReport]:
    return item.stash.get(PHASE_REPORTS_KEY, {})


def project_of(item, rootpath: Path) -> Optional[str]:
    try:
        parts = Path(item.path).resolve().relative_to(rootpath.resolve()).parts
    except ValueError:
        return None
    return parts[0] if parts and parts[0] in KNOWN_PROJECTS else None


def tag_text(item) -> str:
    """Marker names as @tags plus the test name, for TAGS matching."""
    tags = [f"@{mark.name}" for mark in item.iter_markers()]
    return " ".join(tags + [item.name])


def outcome_of(report: pytest.TestReport) -> Optional[Outcome]:
    """One outcome per test: a failed/skipped setup, otherwise the call phase."""
    if report.when == "setup" and not report.passed:
        return Outcome.SKIPPED if report.skipped else Outcome.FAILED
    if report.when != "call":
        return None
    if report.passed:
        return Outcome.PASSED
    if report.skipped:
        return Outcome.SKIPPED
    return Outcome.FAILED
#
# ============================================================================
# Section 3: Plugin hooks
# ============================================================================
# Method 3.1: pytest_addoption
# ============================================================================
#
def pytest_addoption(parser):
    group = parser.getgroup("discord", "Discord live reporting")
    group.addoption("--no-discord", action="store_true", default=False,
                    help="disable Discord reporting for this run")
    group.addoption("--report-url", action="store", default=None,
                    help="link to a published HTML report, shown in the final summary")
#
# ============================================================================
# Method 3.2: pytest_configure
# Purpose: Load settings, set up logging and start this process's session.
# ============================================================================
#
def pytest_configure(config):

    try:
        settings = ConfigManager().get()
    except ConfigError as e:
        raise pytest.UsageError(str(e))

    worker = getattr(config, "workerinput", {}).get("workerid")
    setup_logging(settings.log_dir, settings.log_level, worker=worker)

    config.addinivalue_line("markers", "e2e: browser test under e2e/")
    config.addinivalue_line("markers", "api: API test under api/")

    if config.getoption("no_discord", default=False):
        settings = settings.model_copy(update={"discord_bot_token": "", "discord_channel_id": ""})

    session = ReportingSession(settings, is_controller=is_controller(config),
                               screenshot=safe_screenshot)
    config.stash[SESSION_KEY] = session.start()
    if is_controller(config):
        config.pluginmanager.register(ProgressRecorder(session), "discord-progress")
#
# ============================================================================
# Method 3.3: pytest_sessionstart
# Purpose: Controller only: clean artifacts and publish the run header.
# ============================================================================
#
@pytest.hookimpl(tryfirst=True)
def pytest_sessionstart(session):

    config = session.config
    if not is_controller(config):
        return
    settings = get_settings(config)
    clean_artifacts(config.rootpath, settings.artifact_dirs)

    reporting = get_session(config)
    if not reporting.enabled:
        return
    grep_label = prettify_grep(extract_raw_grep(config, settings))
    try:
        meta = send_suite_header(settings, grep_label, reporting.store)
        logger.info(f"Reporting to Discord thread {meta.thread_id}: {meta.suite_label}")
    except ReportingError as e:
        logger.warning(f"Could not post the suite header; live reporting is off for this run: {e}")
#
# ============================================================================
# Method 3.4: pytest_collection_modifyitems
# Purpose: Mark tests by project directory, then apply PROJECT and TAGS.
# ============================================================================
#
def pytest_collection_modifyitems(session, config, items):

    settings = get_settings(config)
    pattern = tag_pattern(settings.tags)
    selected: List[pytest.Item] = []
    deselected: List[pytest.Item] = []

    for item in items:
        project = project_of(item, config.rootpath)
        if project is not None:
            item.add_marker(project)
            if not settings.project_selected(project):
                deselected.append(item)
                continue
        if pattern is not None and not pattern.search(tag_text(item)):
            deselected.append(item)
            continue
        selected.append(item)

    if deselected:
        logger.debug(f"Deselected {len(deselected)} test(s) by PROJECT/TAGS")
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected
#
# ============================================================================
# Method 3.5: pytest_collection_finish
# Purpose: The planned total is known once collection is final.
# ============================================================================
#
def pytest_collection_finish(session):
    config = session.config
    if is_controller(config) and not is_distributed(config):
        get_session(config).start_progress(len(session.items))


@pytest.hookimpl(optionalhook=True)
def pytest_xdist_auto_num_workers(config):
    return get_settings(config).threads
#
# ============================================================================
# Method 3.6: pytest_runtest_makereport
# Purpose: Keep each phase report on the item for the teardown hooks.
# ============================================================================
#
@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):

    outcome = yield
    report = outcome.get_result()
    item.stash.setdefault(PHASE_REPORTS_KEY, {})[report.when] = report
#
# ============================================================================
# Class 3.7: ProgressRecorder
# Purpose: Feeds the header tracker. Registered on the controller only;
#          under xdist it receives the reports relayed from the workers.
# ============================================================================
#
class ProgressRecorder:

    def __init__(self, reporting: ReportingSession):
        self.reporting = reporting
        self.total_announced = False

    def pytest_runtest_logreport(self, report):
        outcome = outcome_of(report)
        if outcome is None:
            return
        if outcome is Outcome.FAILED:
            logger.error(f"Test FAILED: {report.nodeid}")
        self.reporting.record_outcome(outcome)

    @pytest.hookimpl(optionalhook=True)
    def pytest_xdist_node_collection_finished(self, node, ids):
        # Every worker collects the full selection; the first one sets the total
        if not self.total_announced:
            self.total_announced = True
            self.reporting.start_progress(len(ids))
#
# ============================================================================
# Method 3.8: pytest_sessionfinish
# Purpose: Drain this process's queue; the controller also finalizes.
# ============================================================================
#
@pytest.hookimpl(trylast=True)
def pytest_sessionfinish(session, exitstatus):
    config = session.config
    report_url = config.getoption("report_url", default=None)
    logger.info(f"Test session finished with status: {exitstatus}")
    get_session(config).shutdown(report_url=report_url)


def pytest_unconfigure(config):
    reporting = config.stash.get(SESSION_KEY, None)
    if reporting is not None:
        reporting.shutdown()


def pytest_report_header(config):
    settings = get_settings(config)
    state = "enabled" if get_session(config).enabled else "disabled"
    return [
        f"TEST_ENV: {settings.test_env} ({settings.base_url or 'no base URL'})",
        f"Discord reporting: {state}",
    ]
#
#
## End of Script
