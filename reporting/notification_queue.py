# ============================================================================
#  File:    notification_queue.py
#  Purpose: Non-blocking FIFO of thread notifications with debounced flushing
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import asyncio
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Deque, FrozenSet, Optional, Union

from loguru import logger

from reporting.event_loop import ScheduledTask

FLUSH_DELAY = 0.1   # coalesce bursts of enqueues
RETRY_DELAY = 0.15  # destination not published yet

Sender = Callable[[str, "QueuedMessage"], Awaitable[Any]]
DestinationResolver = Callable[[], Awaitable[Optional[str]]]
#
# ============================================================================
# SECTION 2: Data Structures
# ============================================================================
#
@dataclass(frozen=True)
class QueuedMessage:
    """One thread post: text plus an optional attachment on disk."""
    content: str
    file_path: Optional[str] = None
    extra_notice: Optional[str] = None

    def attachment(self) -> Optional[Path]:
        if self.file_path and Path(self.file_path).is_file():
            return Path(self.file_path)
        return None

    def body(self) -> str:
        if self.extra_notice and self.attachment() is None:
            return f"{self.content}\n\n{self.extra_notice}"
        return self.content
#
# ============================================================================
# SECTION 3: NotificationQueue
# ============================================================================
# Class 3.1: NotificationQueue
# Purpose: Buffer outbound notifications and deliver them in order without
#          blocking the caller.
# ============================================================================
#
class NotificationQueue:
    """
    FIFO of QueuedMessage objects delivered by a single flush loop.

    enqueue() appends and arms a short debounce timer, so a burst of tests
    finishing together costs one flush pass. A flush resolves the destination
    once; while it is unknown (setup has not published the run metadata yet)
    the queue is left untouched and the flush is retried after retry_delay.
    Once resolved, messages go out one at a time and each send is awaited
    before the next. A failed send is logged and dropped, never retried.

    All methods must run on the event loop that owns the queue.
    """

    def __init__(self, send: Sender, resolve_destination: DestinationResolver,
                 flush_delay: float = FLUSH_DELAY, retry_delay: float = RETRY_DELAY):
        self._send = send
        self._resolve_destination = resolve_destination
        self.flush_delay = flush_delay
        self.retry_delay = retry_delay

        self._messages: Deque[QueuedMessage] = deque()
        self._pending_sends: set = set()
        self._scheduled: Optional[ScheduledTask] = None
        self._flush_lock = asyncio.Lock()
        self._waiting_logged = False

        self.flush_passes = 0
        self.sent = 0
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def pending_sends(self) -> FrozenSet[asyncio.Future]:
        return frozenset(self._pending_sends)

    @property
    def flush_scheduled(self) -> bool:
        return self._scheduled is not None

    # ========================================================================
    # Method 3.1.1: enqueue
    # ========================================================================
    def enqueue(self, message: Union[str, QueuedMessage]) -> None:
        if isinstance(message, str):
            message = QueuedMessage(content=message)
        if not message.content and message.attachment() is None:
            logger.debug("Ignoring notification with no content and no attachment")
            return
        self._messages.append(message)
        self.schedule_flush()

    # ========================================================================
    # Method 3.1.2: schedule_flush
    # Purpose: No-op while a flush is scheduled or running; otherwise arm the
    #          debounce timer.
    # ========================================================================
    def schedule_flush(self, delay: Optional[float] = None) -> None:
        if self._scheduled is not None:
            return
        self._scheduled = ScheduledTask(
            self.flush_delay if delay is None else delay, self._scheduled_flush, name="flush"
        )

    async def _scheduled_flush(self) -> None:
        delivered = False
        try:
            delivered = await self.flush()
        except Exception as e:
            logger.opt(exception=e).error("Notification flush failed; will retry")
        finally:
            self._scheduled = None
            if self._messages:
                self.schedule_flush(self.flush_delay if delivered else self.retry_delay)

    # ========================================================================
    # Method 3.1.3: flush
    # Purpose: One pass over the queue. Returns False when the destination
    #          is not ready and nothing was sent.
    # ========================================================================
    async def flush(self) -> bool:
        async with self._flush_lock:
            self.flush_passes += 1
            if not self._messages:
                return True

            destination = await self._resolve_destination()
            if not destination:
                if not self._waiting_logged:
                    logger.info(f"Run thread not ready; holding {len(self._messages)} notification(s)")
                    self._waiting_logged = True
                return False
            self._waiting_logged = False

            while self._messages:
                message = self._messages.popleft()
                await self._send_tracked(destination, message)
            return True

    async def _send_tracked(self, destination: str, message: QueuedMessage) -> None:
        send = asyncio.ensure_future(self._send(destination, message))
        self._pending_sends.add(send)
        send.add_done_callback(self._pending_sends.discard)
        try:
            await send
            self.sent += 1
        except Exception as e:
            self.dropped += 1
            logger.warning(f"Dropped notification '{message.content[:60]}': {e}")

    # ========================================================================
    # Method 3.1.4: drain
    # Purpose: Deliver everything queued and wait for in-flight sends. With a
    #          timeout, give up waiting for a destination that never appears.
    # ========================================================================
    async def drain(self, timeout: Optional[float] = None) -> bool:
        await self._settle_scheduled()

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            delivered = await self.flush()
            if delivered and not self._messages:
                break
            if not delivered:
                if deadline is not None and loop.time() >= deadline:
                    logger.warning(
                        f"Run thread never became available; "
                        f"{len(self._messages)} notification(s) not delivered"
                    )
                    break
                await asyncio.sleep(self.retry_delay)

        if self._pending_sends:
            await asyncio.gather(*list(self._pending_sends), return_exceptions=True)
        await self._settle_scheduled()
        return not self._messages

    async def _settle_scheduled(self) -> None:
        """Cancel a timer that has not fired; let a flush already under way finish."""
        scheduled = self._scheduled
        if scheduled is None:
            return
        if scheduled.cancel():
            self._scheduled = None
            return
        await scheduled.wait()
        follow_up = self._scheduled
        if follow_up is not None and follow_up.cancel():
            self._scheduled = None
#
#
## End of notification_queue.py
