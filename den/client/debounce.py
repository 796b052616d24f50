"""
Per-key debouncing.

Each key owns at most one scheduled callback. Scheduling again for the
same key cancels the pending one, so a burst of edits to one note
produces a single save once the burst goes quiet.
"""

import asyncio
from collections.abc import Awaitable, Callable

Callback = Callable[[], Awaitable[None]]


class Debouncer:
    """Cancellable delayed callbacks keyed by id."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task] = {}
        self._callbacks: dict[str, Callback] = {}
        self._running: set[asyncio.Task] = set()

    def pending(self, key: str) -> bool:
        return key in self._tasks

    def schedule(self, key: str, delay: float, callback: Callback) -> None:
        """Run `callback` after `delay` seconds unless superseded or cancelled."""
        self.cancel(key)
        self._callbacks[key] = callback
        self._tasks[key] = asyncio.create_task(self._run(key, delay, callback))

    async def _run(self, key: str, delay: float, callback: Callback) -> None:
        await asyncio.sleep(delay)
        task = asyncio.current_task()
        if self._tasks.get(key) is task:
            del self._tasks[key]
            self._callbacks.pop(key, None)
        # Started callbacks are no longer pending but still count for wait_idle
        self._running.add(task)
        try:
            await callback()
        finally:
            self._running.discard(task)

    def cancel(self, key: str) -> bool:
        """Drop the pending callback for `key`. Returns whether one existed."""
        task = self._tasks.pop(key, None)
        self._callbacks.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def flush(self, key: str) -> bool:
        """Run the pending callback for `key` now. Returns whether one ran."""
        callback = self._callbacks.get(key)
        if callback is None:
            return False
        self.cancel(key)
        await callback()
        return True

    async def flush_all(self) -> None:
        for key in list(self._callbacks):
            await self.flush(key)

    def cancel_all(self) -> None:
        for key in list(self._tasks):
            self.cancel(key)

    async def wait_idle(self) -> None:
        """Wait for every scheduled callback to finish or be cancelled."""
        while self._tasks or self._running:
            tasks = [*self._tasks.values(), *self._running]
            await asyncio.gather(*tasks, return_exceptions=True)
