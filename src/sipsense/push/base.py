"""Abstract push channel, its exceptions, and the in-process trigger scheduler."""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod

from sipsense.notifications.models import PushPriority

logger = logging.getLogger(__name__)

# --- Exceptions ---


class PushError(Exception):
    """Base exception for all push channel errors."""

    def __init__(self, channel_name: str, message: str) -> None:
        self.channel_name = channel_name
        super().__init__(f"[{channel_name}] {message}")


class PushTimeoutError(PushError):
    """Raised when a push request times out."""

    def __init__(self, channel_name: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(channel_name, f"Request timed out after {timeout}s")


# --- Abstract Base Classes ---


class PushChannel(ABC):
    """Outbound push-notification collaborator.

    `available` is the capability flag: callers check it once and treat an
    unavailable channel as a no-op instead of probing at call time.
    """

    name: str

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether this channel can deliver anything on this machine."""

    @abstractmethod
    async def send(
        self,
        title: str,
        body: str,
        priority: PushPriority = PushPriority.DEFAULT,
        payload: dict | None = None,
    ) -> None:
        """Deliver a notification now.

        Raises:
            PushError: On delivery failure.
            PushTimeoutError: When delivery exceeds the timeout.
        """

    @abstractmethod
    async def schedule(
        self,
        title: str,
        body: str,
        priority: PushPriority,
        payload: dict | None,
        delay_seconds: float,
    ) -> str:
        """Register a notification to fire after `delay_seconds`.

        Returns:
            Opaque handle usable with `cancel`.
        """

    @abstractmethod
    async def cancel(self, handle: str) -> None:
        """Cancel one scheduled notification. Unknown handles are ignored."""

    @abstractmethod
    async def cancel_all(self) -> None:
        """Cancel every scheduled notification."""

    @abstractmethod
    async def count_scheduled(self) -> int:
        """Number of scheduled notifications still pending."""


class NullPushChannel(PushChannel):
    """Stand-in used when no push backend is present or push is disabled."""

    name = "none"

    @property
    def available(self) -> bool:
        return False

    async def send(self, title, body, priority=PushPriority.DEFAULT, payload=None) -> None:
        return None

    async def schedule(self, title, body, priority, payload, delay_seconds) -> str:
        return ""

    async def cancel(self, handle: str) -> None:
        return None

    async def cancel_all(self) -> None:
        return None

    async def count_scheduled(self) -> int:
        return 0


class LocalScheduledChannel(PushChannel):
    """Push channel whose future triggers live as asyncio tasks in this process.

    Subclasses implement `send`; scheduling, cancellation and counting are
    shared. Handles are uuid4 hex strings. A trigger stays counted until its
    push has been delivered, but can no longer be cancelled once it fires.
    """

    def __init__(self) -> None:
        self._scheduled: dict[str, asyncio.Task] = {}
        self._firing: set[str] = set()

    async def schedule(
        self,
        title: str,
        body: str,
        priority: PushPriority,
        payload: dict | None,
        delay_seconds: float,
    ) -> str:
        handle = uuid.uuid4().hex

        async def _fire() -> None:
            await asyncio.sleep(delay_seconds)
            self._firing.add(handle)
            try:
                await self.send(title, body, priority, payload)
            except PushError as e:
                logger.warning("Scheduled push %s failed: %s", handle, e)
            finally:
                self._firing.discard(handle)
                self._scheduled.pop(handle, None)

        self._scheduled[handle] = asyncio.create_task(_fire())
        logger.debug("[%s] Scheduled %s in %.0fs", self.name, handle, delay_seconds)
        return handle

    async def cancel(self, handle: str) -> None:
        if handle in self._firing:
            return
        task = self._scheduled.pop(handle, None)
        if task is not None:
            task.cancel()

    async def cancel_all(self) -> None:
        pending = [h for h in self._scheduled if h not in self._firing]
        tasks = [self._scheduled.pop(h) for h in pending]
        for task in tasks:
            task.cancel()
        logger.debug("[%s] Cancelled %d scheduled push(es)", self.name, len(tasks))

    async def count_scheduled(self) -> int:
        return len(self._scheduled)
