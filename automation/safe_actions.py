# ============================================================================
#  File:    safe_actions.py
#  Purpose: Playwright actions that return a boolean instead of raising, so
#           tests can decide what to report when a step fails.
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import re
import sys
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Pattern, Union

from loguru import logger
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, Page

from reporting.snippets import first_line
from reporting.timeouts import Timeouts

SCREENSHOT_DIR = Path("screenshots")
SELECT_ALL = "Meta+A" if sys.platform == "darwin" else "Control+A"
TYPE_DELAY_MS = 15
#
# ============================================================================
# SECTION 2: Targets
# ============================================================================
# Class 2.1: Target
# Purpose: What an action operates on: a selector on a page, or a Locator
#          the caller already built. Resolved once, at the call boundary.
# ============================================================================
#
class TargetKind(Enum):
    SELECTOR = "selector"
    LOCATOR = "locator"


@dataclass(frozen=True)
class Target:
    kind: TargetKind
    page: Any
    selector: Optional[str] = None
    locator: Any = None

    @classmethod
    def from_selector(cls, page: Page, selector: str) -> "Target":
        return cls(TargetKind.SELECTOR, page, selector=selector)

    @classmethod
    def from_locator(cls, page: Page, locator: Locator) -> "Target":
        return cls(TargetKind.LOCATOR, page, locator=locator)

    @classmethod
    def of(cls, page: Page, target: Union[str, Locator, "Target"]) -> "Target":
        if isinstance(target, Target):
            return target
        if isinstance(target, str):
            return cls.from_selector(page, target)
        if isinstance(target, Locator):
            return cls.from_locator(page, target)
        raise TypeError(f"Expected a selector, Locator or Target, got {type(target).__name__}")

    def resolve(self) -> Locator:
        if self.kind is TargetKind.SELECTOR:
            return self.page.locator(self.selector)
        return self.locator

    def describe(self) -> str:
        return self.selector if self.kind is TargetKind.SELECTOR else repr(self.locator)
#
# ============================================================================
# SECTION 3: Last Error Registry
# ============================================================================
# Class 3.1: LastErrorRegistry
# Purpose: Short text of the most recent failed action, per page. Entries
#          disappear with the page.
# ============================================================================
#
class LastErrorRegistry:

    def __init__(self):
        self._errors: "weakref.WeakKeyDictionary[Any, str]" = weakref.WeakKeyDictionary()

    def record(self, page: Any, error: BaseException) -> str:
        short = first_line(getattr(error, "message", None) or str(error)) or error.__class__.__name__
        self._errors[page] = short
        return short

    def get(self, page: Any) -> str:
        return self._errors.get(page, "")

    def clear(self, page: Any) -> None:
        self._errors.pop(page, None)


LAST_ERRORS = LastErrorRegistry()


def get_last_error(page: Any) -> str:
    """Short error from the last failed safe_* call on this page, or ''."""
    return LAST_ERRORS.get(page)


def _failed(page: Any, action: str, target: Optional[Target], error: PlaywrightError) -> bool:
    short = LAST_ERRORS.record(page, error)
    where = f" {target.describe()}" if target is not None else ""
    logger.debug(f"{action}{where} failed: {short}")
    return False
#
# ============================================================================
# SECTION 4: Safe Actions
# ============================================================================
#
def safe_wait_for_element_visible(page: Page, target: Union[str, Locator, Target],
                                  timeout: int = Timeouts.STANDARD) -> bool:
    target = Target.of(page, target)
    try:
        target.resolve().wait_for(state="visible", timeout=timeout)
        return True
    except PlaywrightError as e:
        return _failed(page, "wait for visible", target, e)


def safe_click(page: Page, target: Union[str, Locator, Target],
               timeout: int = Timeouts.STANDARD) -> bool:
    """Click anything: buttons, links, checkboxes, menu items."""
    target = Target.of(page, target)
    try:
        loc = target.resolve()
        loc.wait_for(state="visible", timeout=timeout)
        loc.click(timeout=timeout)
        return True
    except PlaywrightError as e:
        return _failed(page, "click", target, e)


def safe_input(page: Page, target: Union[str, Locator, Target], text: Any,
               timeout: int = Timeouts.STANDARD, delay: int = TYPE_DELAY_MS) -> bool:
    """Clear the field with select-all + Backspace, then type key by key."""
    target = Target.of(page, target)
    try:
        loc = target.resolve()
        loc.wait_for(state="visible", timeout=timeout)
        loc.click(timeout=timeout)  # focus
        page.keyboard.press(SELECT_ALL)
        page.keyboard.press("Backspace")
        if text:
            page.keyboard.type(str(text), delay=delay)
        return True
    except PlaywrightError as e:
        return _failed(page, "input", target, e)


def safe_hover(page: Page, target: Union[str, Locator, Target],
               timeout: int = Timeouts.STANDARD) -> bool:
    target = Target.of(page, target)
    try:
        loc = target.resolve()
        loc.wait_for(state="visible", timeout=timeout)
        loc.hover(timeout=timeout)
        return True
    except PlaywrightError as e:
        return _failed(page, "hover", target, e)


def safe_navigate_to_url(page: Page, url: str, timeout: int = Timeouts.EXTRA_LONG,
                         wait_until: str = "load") -> bool:
    try:
        page.goto(url, timeout=timeout, wait_until=wait_until)
        return True
    except PlaywrightError as e:
        return _failed(page, f"navigate to {url}", None, e)


def safe_wait_for_page_load(page: Page, expected_url: Union[str, Pattern[str]],
                            timeout: int = Timeouts.EXTRA_LONG, wait_until: str = "load") -> bool:
    """Wait for a redirect or click to land on expected_url."""
    try:
        page.wait_for_url(expected_url, timeout=timeout, wait_until=wait_until)
        return True
    except PlaywrightError as e:
        return _failed(page, f"wait for url {expected_url}", None, e)


def safe_screenshot(page: Optional[Page], title: str = "test",
                    directory: Union[str, Path] = SCREENSHOT_DIR) -> Optional[str]:
    """
    Viewport screenshot named <UTC timestamp>__<title>.png. Returns the
    file path, or None if the page is gone or the capture failed.
    """
    if page is None:
        return None
    directory = Path(directory)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    base = re.sub(r"[^A-Za-z0-9_-]+", "_", title or "test")[:120]
    path = directory / f"{stamp}__{base}.png"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        page.screenshot(path=str(path))
    except (PlaywrightError, OSError) as e:
        logger.warning(f"Screenshot failed for '{title}': {first_line(str(e))}")
        return None
    return str(path)
#
#
## End of safe_actions.py
