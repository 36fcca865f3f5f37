# ============================================================================
#  File:    session.py
#  Purpose: Wires settings, the reporting loop, the notification queue and
#           the header tracker together for one pytest process.
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import concurrent.futures
from typing import Any, Callable, Optional

from loguru import logger

from reporting.config_manager import ReportingSettings
from reporting.discord_client import DiscordRestClient
from reporting.event_loop import ReportingLoop
from reporting.notification_queue import NotificationQueue, QueuedMessage
from reporting.progress import HeaderProgressTracker, Outcome
from reporting.run_context import ReportingContext
from reporting.run_metadata import RunMetadataStore

SHUTDOWN_GRACE = 5.0  # seconds on top of drain_timeout for the final edit
#
# ============================================================================
# SECTION 2: ReportingSession
# ============================================================================
# Class 2.1: ReportingSession
# Purpose: Constructed in pytest_configure, shut down in pytest_sessionfinish.
#          The controller process also owns the header tracker.
# ============================================================================
#
class ReportingSession:
    """
    Lifecycle owner for Discord reporting in one pytest process.

    Without DISCORD_BOT_TOKEN and DISCORD_CHANNEL_ID the session is inert:
    no loop thread, no HTTP client, one log line. The ReportingContext still
    validates mark_failed() calls so misuse surfaces the same way.
    """

    def __init__(self, settings: ReportingSettings, is_controller: bool = True,
                 rest_client: Optional[DiscordRestClient] = None,
                 loop: Optional[ReportingLoop] = None,
                 screenshot: Optional[Callable[[Any, str], Optional[str]]] = None):
        self.settings = settings
        self.is_controller = is_controller
        self.enabled = settings.discord_enabled
        self.store = RunMetadataStore(settings.run_meta_path)
        self.client: Optional[DiscordRestClient] = None
        self.loop: Optional[ReportingLoop] = None
        self.queue: Optional[NotificationQueue] = None
        self.tracker: Optional[HeaderProgressTracker] = None
        self._closed = False

        if not self.enabled:
            logger.info("Discord reporting disabled: DISCORD_BOT_TOKEN/DISCORD_CHANNEL_ID not set")
            self.context = ReportingContext(settings.log_passed, submit=None, screenshot=screenshot)
            return

        self.client = rest_client or DiscordRestClient(
            settings.discord_bot_token, settings.discord_api_base, settings.request_timeout
        )
        self.loop = loop or ReportingLoop()
        self.queue = NotificationQueue(
            self._send, self._resolve_thread,
            flush_delay=settings.flush_delay, retry_delay=settings.retry_delay,
        )
        if is_controller:
            self.tracker = HeaderProgressTracker(self.client, self.store, settings.bar_segments)
        self.context = ReportingContext(settings.log_passed, submit=self.submit, screenshot=screenshot)

    def start(self) -> "ReportingSession":
        if self.loop is not None:
            self.loop.start()
        return self

    # ========================================================================
    # Method 2.1.1: Hand-offs from pytest hooks (non-blocking)
    # ========================================================================
    def submit(self, message: QueuedMessage) -> None:
        if self.queue is not None:
            self.loop.call(self.queue.enqueue, message)

    def start_progress(self, total: int) -> None:
        if self.tracker is not None:
            self.loop.call(self.tracker.start, total)

    def record_outcome(self, outcome: Outcome) -> None:
        if self.tracker is not None:
            self.loop.call(self.tracker.record, outcome)

    # ========================================================================
    # Method 2.1.2: shutdown
    # Purpose: Drain queued posts, write the final summary and stop the loop.
    #          Blocks the calling thread; runs once.
    # ========================================================================
    def shutdown(self, report_url: Optional[str] = None) -> None:
        if self._closed or not self.enabled:
            return
        self._closed = True
        try:
            self.loop.run(self._shutdown(report_url), self.settings.drain_timeout + SHUTDOWN_GRACE)
        except concurrent.futures.TimeoutError:
            logger.warning("Discord reporting did not finish shutting down in time")
        except RuntimeError as e:
            logger.warning(f"Discord reporting shutdown skipped: {e}")
        except Exception as e:
            logger.opt(exception=e).error("Discord reporting shutdown failed; the run is unaffected")
        finally:
            self.loop.stop()

    async def _shutdown(self, report_url: Optional[str]) -> None:
        try:
            delivered = await self.queue.drain(self.settings.drain_timeout)
            logger.info(
                f"Notification queue drained: {self.queue.sent} sent, "
                f"{self.queue.dropped} dropped{'' if delivered else ', some undelivered'}"
            )
            if self.tracker is not None:
                await self.tracker.finalize(report_url or self.settings.report_url or None)
        finally:
            await self.client.aclose()

    # ========================================================================
    # Method 2.1.3: Queue collaborators (run on the reporting loop)
    # ========================================================================
    async def _resolve_thread(self) -> Optional[str]:
        meta = await self.store.read()
        return meta.thread_id if meta is not None else None

    async def _send(self, thread_id: str, message: QueuedMessage) -> bool:
        return await self.client.post_to_thread(thread_id, message.body(), message.attachment())
#
#
## End of session.py
