# ============================================================================
# File: progress.py
# Purpose: Live run progress rendered into the Discord header message.
# ============================================================================

# Section 1: Imports and Initializations
# ============================================================================
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from reporting.discord_client import DiscordRestClient
from reporting.error_handling import best_effort
from reporting.run_metadata import RunMetadata, RunMetadataStore

BAR_SEGMENTS = 8
FILLED = "▰"
EMPTY = "▱"

# ============================================================================
# Section 2: Data Structures
# ============================================================================

class Outcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TrackerState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINALIZED = "finalized"


@dataclass
class ProgressCounters:
    """Running tallies for the run. Only ever increase."""
    total: int = 0
    completed: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    def record(self, outcome: Outcome) -> None:
        self.completed += 1
        if outcome is Outcome.PASSED:
            self.passed += 1
        elif outcome is Outcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def percent(self) -> int:
        return progress_percent(self.completed, self.total)

# ============================================================================
# Section 3: Rendering
# ============================================================================

def progress_percent(completed: int, total: int) -> int:
    """floor(completed / total * 100), 0 when total is 0, kept within [0, 100]."""
    if total <= 0:
        return 0
    return max(0, min(100, (completed * 100) // total))


def filled_segments(percent: int, segments: int = BAR_SEGMENTS) -> int:
    """Nearest whole segment (halves round up), clamped to [0, segments]."""
    if segments <= 0:
        return 0
    filled = (2 * percent * segments + 100) // 200
    return max(0, min(segments, filled))


def render_bar(percent: int, segments: int = BAR_SEGMENTS) -> str:
    filled = filled_segments(percent, segments)
    return FILLED * filled + EMPTY * (max(segments, 0) - filled)


def _summary_block(counters: ProgressCounters) -> str:
    return (
        "📊 Test Summary\n"
        f"✅ Passed: {counters.passed}\n"
        f"❌ Failed: {counters.failed}\n"
        f"⚪ Skipped: {counters.skipped}"
    )


def render_running_header(label: str, counters: ProgressCounters,
                          segments: int = BAR_SEGMENTS) -> str:
    percent = counters.percent
    return (
        f"{label}\n"
        f"Tests are running {render_bar(percent, segments)} {percent}% "
        f"[{counters.completed}/{counters.total}]\n\n"
        f"{_summary_block(counters)}"
    )


def render_final_summary(label: str, counters: ProgressCounters) -> str:
    total = counters.passed + counters.failed + counters.skipped
    return (
        f"{label}\n"
        f"Tests completed ✅ 100% [{total}/{total}]\n\n"
        f"{_summary_block(counters)}"
    )


def report_embeds(report_url: Optional[str]) -> List[Dict[str, Any]]:
    if not report_url:
        return []
    return [{"description": f"🔗 [HTML report is here]({report_url})"}]

# ============================================================================
# Section 4: Header Progress Tracker
# ============================================================================

class HeaderProgressTracker:
    """
    Keeps one header message current while the run executes.

    Header edits overwrite in place and only the latest state matters, so
    renders are coalesced: at most one edit is in flight and any number of
    updates that arrive meanwhile collapse into a single follow-up edit
    carrying the newest counters.

    Lifecycle is NOT_STARTED -> RUNNING (start) -> FINALIZED (finalize).
    Every method must be called on the reporting event loop.
    """

    def __init__(self, client: Optional[DiscordRestClient], store: RunMetadataStore,
                 segments: int = BAR_SEGMENTS):
        self.client = client
        self.store = store
        self.segments = segments
        self.counters = ProgressCounters()
        self.state = TrackerState.NOT_STARTED
        self._dirty = False
        self._render_task: Optional[asyncio.Task] = None

    def start(self, total: int) -> None:
        if self.state is not TrackerState.NOT_STARTED:
            logger.debug(f"Ignoring start({total}); tracker is {self.state.value}")
            return
        self.counters.total = max(0, int(total))
        self.state = TrackerState.RUNNING
        logger.info(f"Run progress started: {self.counters.total} planned tests")
        self._request_render()

    def record(self, outcome: Outcome) -> None:
        if self.state is TrackerState.FINALIZED:
            logger.debug(f"Ignoring late '{outcome.value}' outcome after finalize")
            return
        self.counters.record(outcome)
        if self.state is TrackerState.RUNNING:
            self._request_render()

    async def wait_idle(self) -> None:
        """Wait until no header edit is in flight."""
        if self._render_task is not None:
            await self._render_task

    async def finalize(self, report_url: Optional[str] = None) -> None:
        if self.state is TrackerState.FINALIZED:
            return
        self.state = TrackerState.FINALIZED
        self._dirty = False
        try:
            await self.wait_idle()
            meta = await self._destination()
            if meta is not None:
                await self._edit_header(
                    meta,
                    render_final_summary(meta.suite_label, self.counters),
                    report_embeds(report_url),
                )
                logger.info(
                    f"Final summary: {self.counters.passed} passed, "
                    f"{self.counters.failed} failed, {self.counters.skipped} skipped"
                )
        finally:
            if self.client is not None:
                await self.client.aclose()

    def _request_render(self) -> None:
        self._dirty = True
        if self._render_task is None or self._render_task.done():
            self._render_task = asyncio.ensure_future(self._render_latest())

    async def _render_latest(self) -> None:
        while self._dirty and self.state is TrackerState.RUNNING:
            self._dirty = False
            meta = await self._destination()
            if meta is None:
                return
            content = render_running_header(meta.suite_label, self.counters, self.segments)
            await self._edit_header(meta, content)

    async def _destination(self) -> Optional[RunMetadata]:
        if self.client is None:
            return None
        return await self.store.read()

    @best_effort(default=False, action="Header edit")
    async def _edit_header(self, meta: RunMetadata, content: str,
                           embeds: Optional[List[Dict[str, Any]]] = None) -> bool:
        return await self.client.edit_message(meta.channel_id, meta.header_message_id,
                                              content, embeds)
