"""Deferred task that ends a breaker's cooldown window.

Each breaker owns exactly one ``CooldownTimer``. Arming the timer replaces any
pending task, so at most one cooldown callback is ever scheduled per breaker.
The task lives on the event loop that armed it. ``cancel`` may be called from
any thread; ``close`` must be awaited on that owning loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress


class CooldownTimer:
    """Cancellable single-slot scheduler backed by an ``asyncio`` task."""

    def __init__(
        self,
        *,
        name: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Create a timer for one breaker.

        Args:
            name: Breaker name, used to label the scheduled task.
            sleep: Awaitable sleep function used to wait out the cooldown.
        """
        self._name = name
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        """Whether a cooldown callback is currently scheduled."""
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def arm(self, delay: float, callback: Callable[[], None]) -> bool:
        """Replace any pending task with one firing ``callback`` after ``delay``.

        Returns:
            ``True`` when a task was scheduled. ``False`` when the timer is
            closed or there is no running event loop to schedule on.
        """
        self.cancel()
        if self._closed:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._task = loop.create_task(
            self._fire_after(delay, callback),
            name=f"circuit_breaker_cooldown:{self._name}",
        )
        return True

    def cancel(self) -> None:
        """Cancel the pending task, if any, without waiting for it."""
        task = self._task
        self._task = None
        if task is not None and not task.done():
            _cancel_on_owner_loop(task)

    async def close(self) -> None:
        """Cancel any pending task and refuse to arm new ones."""
        self._closed = True
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def _fire_after(self, delay: float, callback: Callable[[], None]) -> None:
        try:
            await self._sleep(delay)
        except asyncio.CancelledError:
            return

        callback()


def _cancel_on_owner_loop(task: asyncio.Task[None]) -> None:
    loop = task.get_loop()
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        if task is not asyncio.current_task(loop):
            task.cancel()
    elif not loop.is_closed():
        loop.call_soon_threadsafe(task.cancel)
