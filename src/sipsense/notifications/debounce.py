"""Debounce coordinator — collapse bursts of updates into one call."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Per-key single-flight timers on the running event loop.

    Each `debounce` call replaces the pending timer for its key, so only the
    last callback of a burst runs. Once a callback has started it is no
    longer pending and runs to completion.
    """

    def __init__(self, delay: float = 2.0) -> None:
        self._delay = delay
        self._pending: dict[str, asyncio.Task] = {}
        self._running: set[asyncio.Task] = set()

    def debounce(self, key: str, callback: Callable[[], Awaitable[None]]) -> None:
        """Arm (or re-arm) the timer for `key`. Must be called inside the event loop."""
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.cancel()

        task = asyncio.get_running_loop().create_task(self._fire(key, callback))
        self._pending[key] = task

    async def _fire(self, key: str, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self._delay)

        task = asyncio.current_task()
        if self._pending.get(key) is task:
            del self._pending[key]
        self._running.add(task)
        try:
            await callback()
        except Exception:
            logger.exception("Debounced callback for %r failed", key)
        finally:
            self._running.discard(task)

    def pending(self, key: str) -> bool:
        """Check whether a timer is armed for `key`."""
        return key in self._pending

    def cancel_all(self) -> None:
        """Cancel every armed timer. Callbacks already running are left alone."""
        for task in self._pending.values():
            task.cancel()
        if self._pending:
            logger.debug("Cancelled %d pending debounce timer(s)", len(self._pending))
        self._pending.clear()

    async def join(self) -> None:
        """Wait until no timer is armed and no callback is running."""
        while self._pending or self._running:
            tasks = [*self._pending.values(), *self._running]
            await asyncio.gather(*tasks, return_exceptions=True)
