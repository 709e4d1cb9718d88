"""Timer-cancel-reschedule primitive for coalescing rapid events."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """
    Run ``callback(value)`` once ``delay`` seconds pass without a new
    ``schedule()`` call.

    Rescheduling only cancels the pending timer. A callback that has already
    started keeps running in its own task; callers detect superseded work
    themselves (e.g. with a generation counter).
    """

    def __init__(self, delay: float, callback: Callable[[T], Awaitable[None]]) -> None:
        self.delay = delay
        self._callback = callback
        self._timer: Optional[asyncio.Task[None]] = None
        self._running: set[asyncio.Task[None]] = set()

    @property
    def scheduled(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def running(self) -> bool:
        return bool(self._running)

    def schedule(self, value: T) -> None:
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire(value))

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def wait(self) -> None:
        """Wait until the pending timer has fired and every started callback finished."""
        while True:
            pending: list[asyncio.Task[None]] = list(self._running)
            if self._timer is not None and not self._timer.done():
                pending.append(self._timer)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        self.cancel()
        tasks = list(self._running)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._running.clear()

    async def _fire(self, value: T) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        task = asyncio.get_running_loop().create_task(self._callback(value))
        self._running.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced callback failed", exc_info=exc)
