# ============================================================================
#  File:    run_context.py
#  Purpose: Per-process reporting state: the active test, failure de-dupe and
#           the notifications produced by pass/fail signals.
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Set, Union

from loguru import logger

from reporting.error_handling import MisuseError
from reporting.notification_queue import QueuedMessage
from reporting.snippets import (
    THREAD_SNIPPET_LIMIT,
    extract_failure_snippet,
    first_line,
    strip_ansi,
    truncate_snippet,
)

PASSED_EMOJI = "✅"
FAILED_EMOJI = "❌"
SCREENSHOT_NOTICE = "Unable to capture screenshot for this failure."
DEFAULT_FAILURE_REASON = "Test failed."
PLAYWRIGHT_TIMEOUT = re.compile(r"Timeout (\d+)ms exceeded")

Submit = Callable[[QueuedMessage], Any]
Screenshotter = Callable[[Any, str], Optional[str]]
#
# ============================================================================
# SECTION 2: Result Values
# ============================================================================
#
@dataclass(frozen=True)
class StepResult:
    """
    Outcome of a reporting step. A failed StepResult is falsy and carries the
    human reason; the test boundary decides whether to stop the test.
    """
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def passed(cls) -> "StepResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> "StepResult":
        return cls(ok=False, reason=reason)


@dataclass
class CurrentTest:
    nodeid: str
    title: str
    page: Any = None


def format_message(emoji: str, title: str, reason: Optional[str] = None) -> str:
    return f"{emoji} {title}\nReason: {reason}" if reason else f"{emoji} {title}"


def format_api_failure(title: str, snippet: str) -> str:
    return "\n".join([
        f"{FAILED_EMOJI} **{title}**",
        "```",
        truncate_snippet(snippet, THREAD_SNIPPET_LIMIT),
        "```",
    ])


def timeout_reason(error_text: Optional[str]) -> Optional[str]:
    """'Test timed-out after Ns.' for a Playwright timeout message, else None."""
    match = PLAYWRIGHT_TIMEOUT.search(strip_ansi(error_text))
    if not match:
        return None
    seconds = round(int(match.group(1)) / 1000)
    return f"Test timed-out after {seconds}s." if seconds else "Test timed-out."
#
# ============================================================================
# SECTION 3: ReportingContext
# ============================================================================
# Class 3.1: ReportingContext
# Purpose: Replaces process-wide "current test" and de-dupe globals. One
#          instance per pytest process, created by ReportingSession.
# ============================================================================
#
class ReportingContext:
    """
    Tracks the running test and turns pass/fail signals into queued messages.

    `submit` hands a QueuedMessage to the notification queue; when it is None
    (reporting disabled) every signal is still validated but nothing is sent.
    A failure message is queued at most once per pytest node id for the life
    of the process.
    """

    def __init__(self, log_passed: bool = False, submit: Optional[Submit] = None,
                 screenshot: Optional[Screenshotter] = None):
        self.log_passed = log_passed
        self._submit = submit
        self._screenshot = screenshot
        self.current: Optional[CurrentTest] = None
        self.failed_ids: Set[str] = set()
        self._pending_reason: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self._submit is not None

    # ========================================================================
    # Method 3.1.1: set_current_test / clear_current_test
    # ========================================================================
    def set_current_test(self, nodeid: str, title: str, page: Any = None) -> None:
        self.current = CurrentTest(nodeid=nodeid, title=title, page=page)
        self._pending_reason = None

    def clear_current_test(self) -> None:
        self.current = None
        self._pending_reason = None

    # ========================================================================
    # Method 3.1.2: mark_passed
    # ========================================================================
    def mark_passed(self, reason: Optional[str] = None) -> StepResult:
        if self.current is None:
            return StepResult.passed()
        if self.log_passed:
            self._enqueue(QueuedMessage(format_message(PASSED_EMOJI, self.current.title, reason)))
        return StepResult.passed()

    # ========================================================================
    # Method 3.1.3: mark_failed
    # Purpose: Record the human reason for the active test's failure and
    #          return a failed StepResult. Misuse raises immediately.
    # ========================================================================
    def mark_failed(self, reason: str) -> StepResult:
        if self.current is None:
            raise MisuseError("mark_failed() called without an active test")
        if not isinstance(reason, str) or not reason.strip():
            raise MisuseError(f"mark_failed('{self.current.title}') requires a non-empty reason")

        if self._pending_reason is None:
            self._pending_reason = reason.strip()
        logger.debug(f"Marked failed: {self.current.nodeid}: {reason}")
        return StepResult.failed(f"[FAILED] {self.current.title}: {reason}")

    def take_pending_reason(self) -> Optional[str]:
        reason, self._pending_reason = self._pending_reason, None
        return reason

    # ========================================================================
    # Method 3.1.4: report_ui_failure
    # Purpose: One failure post with a viewport screenshot, or a notice
    #          when the screenshot could not be taken.
    # ========================================================================
    def report_ui_failure(self, nodeid: str, title: str, page: Any = None,
                          error_text: Optional[str] = None) -> bool:
        if not self._claim_failure(nodeid):
            return False

        reason = (
            self.take_pending_reason()
            or timeout_reason(error_text)
            or first_line(strip_ansi(error_text))
            or DEFAULT_FAILURE_REASON
        )
        shot = self._screenshot(page, title) if (self._screenshot and page is not None) else None
        message = QueuedMessage(
            content=format_message(FAILED_EMOJI, title, reason),
            file_path=shot,
            extra_notice=None if shot else SCREENSHOT_NOTICE,
        )
        self._enqueue(message)
        return True

    # ========================================================================
    # Method 3.1.5: report_api_failure
    # ========================================================================
    def report_api_failure(self, nodeid: str, title: str,
                           errors: Union[str, Iterable[Optional[str]], None]) -> bool:
        if not self._claim_failure(nodeid):
            return False
        pending = self.take_pending_reason()
        snippet = extract_failure_snippet(errors) or pending or DEFAULT_FAILURE_REASON
        self._enqueue(QueuedMessage(format_api_failure(title, snippet)))
        return True

    def _claim_failure(self, nodeid: str) -> bool:
        if nodeid in self.failed_ids:
            logger.debug(f"Failure for {nodeid} already reported")
            return False
        self.failed_ids.add(nodeid)
        return True

    def _enqueue(self, message: QueuedMessage) -> None:
        if self._submit is None:
            return
        self._submit(message)
#
#
## End of run_context.py
