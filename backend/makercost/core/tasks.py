"""
Scheduling primitives for background work on the event loop.

DebouncedTask: a cancellable delayed call; scheduling again replaces the
pending call.
SingleFlight: runs at most one call at a time; extra calls are dropped
unless forced, and every call is bounded by a timeout.
"""
from typing import Any, Awaitable, Callable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[Any]]


class DebouncedTask:
    """Delayed call that is rescheduled, not stacked, on every trigger"""

    def __init__(self, callback: AsyncCallback, delay: float, name: str = "debounced"):
        self._callback = callback
        self.delay = delay
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, delay: Optional[float] = None) -> asyncio.Task:
        """Cancel any pending call and schedule a new one ``delay`` seconds out"""
        self.cancel()
        wait = self.delay if delay is None else delay
        self._task = asyncio.get_running_loop().create_task(self._run_after(wait), name=self.name)
        self._task.add_done_callback(self._log_failure)
        return self._task

    def cancel(self) -> bool:
        if self.pending:
            self._task.cancel()
            logger.debug(f"{self.name}: pending call cancelled")
            return True
        return False

    async def fire_now(self) -> Any:
        """Cancel the pending call and run the callback immediately"""
        self.cancel()
        return await self._callback()

    async def wait(self) -> None:
        """Wait for the pending call, if any, to finish or be cancelled"""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_after(self, delay: float) -> Any:
        await asyncio.sleep(delay)
        return await self._callback()

    def _log_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"{self.name}: scheduled call failed: {error}", exc_info=error)


class SingleFlight:
    """Mutual exclusion for logically overlapping async workflows"""

    def __init__(self, name: str, timeout: Optional[float] = None):
        self.name = name
        self.timeout = timeout
        self._in_flight = 0

    @property
    def running(self) -> bool:
        return self._in_flight > 0

    async def run(self, func: AsyncCallback, force: bool = False) -> Optional[Any]:
        """
        Run ``func`` unless another run is in flight.

        Args:
            func: Coroutine function to run
            force: Run even when another call is in flight

        Returns:
            The result of ``func``, or None when the call was dropped

        Raises:
            asyncio.TimeoutError: ``func`` did not finish within ``timeout``
        """
        if self.running and not force:
            logger.info(f"{self.name}: already running, call dropped")
            return None

        self._in_flight += 1
        try:
            if self.timeout is None:
                return await func()
            return await asyncio.wait_for(func(), timeout=self.timeout)
        finally:
            self._in_flight -= 1
