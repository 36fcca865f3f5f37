# ============================================================================
#  File:    event_loop.py
#  Purpose: Background asyncio loop for reporting, plus cancellable timers
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import asyncio
import concurrent.futures
import threading
from typing import Any, Awaitable, Callable, Coroutine, Optional

from loguru import logger

LOOP_START_TIMEOUT = 5.0
#
# ============================================================================
# SECTION 2: ScheduledTask
# ============================================================================
# Class 2.1: ScheduledTask
# Purpose: Run a coroutine function once after a delay. The handle can be
#          cancelled while it is still waiting, and awaited either way.
# ============================================================================
#
class ScheduledTask:

    def __init__(self, delay: float, callback: Callable[[], Awaitable[Any]], name: str = ""):
        self.delay = delay
        self.name = name or getattr(callback, "__name__", "scheduled")
        self._started = False
        self._task = asyncio.ensure_future(self._run(callback))

    async def _run(self, callback: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(self.delay)
        self._started = True
        await callback()

    @property
    def started(self) -> bool:
        return self._started

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """Cancel if the delay has not elapsed yet. A running callback is left alone."""
        if self._started or self._task.done():
            return False
        return self._task.cancel()

    async def wait(self) -> None:
        # asyncio.wait does not re-raise the task's cancellation or error
        await asyncio.wait([self._task])
        if not self._task.cancelled() and self._task.exception() is not None:
            logger.opt(exception=self._task.exception()).error(
                f"Scheduled task '{self.name}' crashed"
            )
#
# ============================================================================
# SECTION 3: ReportingLoop
# ============================================================================
# Class 3.1: ReportingLoop
# Purpose: One event loop on one daemon thread per pytest process. Pytest
#          hooks are synchronous, so they hand work to the loop and only
#          block when the session is shutting down.
# ============================================================================
#
class ReportingLoop:

    def __init__(self, name: str = "discord-reporting"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> "ReportingLoop":
        if self._thread is not None:
            return self
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._serve, name=self.name, daemon=True)
        self._thread.start()
        if not self._ready.wait(LOOP_START_TIMEOUT):
            raise RuntimeError(f"Reporting loop '{self.name}' did not start")
        logger.debug(f"Reporting loop '{self.name}' started")
        return self

    def _serve(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)
        self._loop.run_forever()

    def call(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Schedule a plain callable on the loop; calls keep submission order."""
        if not self.running:
            logger.debug(f"Reporting loop not running; dropped call to {getattr(fn, '__name__', fn)}")
            return False
        self._loop.call_soon_threadsafe(fn, *args)
        return True

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the loop and block the calling thread for its result."""
        if not self.running:
            coro.close()
            raise RuntimeError(f"Reporting loop '{self.name}' is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self, timeout: float = 5.0) -> None:
        if self._loop is None:
            return
        if self.running:
            try:
                self.run(self._cancel_pending(), timeout)
            except concurrent.futures.TimeoutError:
                logger.warning(f"Reporting loop '{self.name}' did not settle within {timeout}s")
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join(timeout)
        if not self._loop.is_running():
            self._loop.close()
        logger.debug(f"Reporting loop '{self.name}' stopped")
        self._loop = None
        self._thread = None
        self._ready.clear()

    @staticmethod
    async def _cancel_pending() -> None:
        current = asyncio.current_task()
        pending = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
#
#
## End of event_loop.py
