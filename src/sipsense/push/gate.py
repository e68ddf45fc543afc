"""Push-dispatch gate — per-type cooldown in front of the push channel."""

import logging
import time
from collections.abc import Callable

from sipsense.notifications.models import PushPriority
from sipsense.push.base import PushChannel

logger = logging.getLogger(__name__)


class PushDispatchGate:
    """Sends at most one push per logical type per cooldown window.

    Cooldowns are deadlines on the monotonic clock, so they expire on their
    own without a reset call. The gate knows nothing about the in-app store;
    its keys carry a "_push" suffix to keep the two key spaces apart.
    """

    def __init__(
        self,
        channel: PushChannel,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the gate.

        Args:
            channel: Outbound push channel.
            cooldown_seconds: Minimum interval between pushes of one type.
            clock: Monotonic time source, replaceable in tests.
        """
        self._channel = channel
        self._cooldown = cooldown_seconds
        self._clock = clock
        # {"<type>_push": suppressed-until}
        self._suppressed_until: dict[str, float] = {}
        self.sent = 0
        self.skipped = 0

    @staticmethod
    def _key(logical_type: str) -> str:
        return f"{logical_type}_push"

    def is_cooling_down(self, logical_type: str) -> bool:
        """Check whether a push of this type would be suppressed right now."""
        key = self._key(logical_type)
        deadline = self._suppressed_until.get(key)
        if deadline is None:
            return False
        if self._clock() >= deadline:
            del self._suppressed_until[key]
            return False
        return True

    async def try_send(
        self,
        logical_type: str,
        title: str,
        body: str,
        priority: PushPriority = PushPriority.DEFAULT,
        payload: dict | None = None,
    ) -> bool:
        """Push now unless this type is cooling down or the channel is absent.

        Returns:
            True if the channel accepted the push.
        """
        if not self._channel.available:
            return False

        if self.is_cooling_down(logical_type):
            self.skipped += 1
            logger.debug("Skipping duplicate push notification: %s", logical_type)
            return False

        key = self._key(logical_type)
        now = self._clock()
        self._suppressed_until[key] = now + self._cooldown

        data = dict(payload or {})
        data.setdefault("type", logical_type)
        data["timestamp"] = time.time()

        try:
            await self._channel.send(title, body, priority, data)
        except Exception as e:
            # Let the next evaluation try again instead of muting the type
            self._suppressed_until.pop(key, None)
            logger.warning("Push notification %s failed: %s", logical_type, e)
            return False

        self.sent += 1
        logger.info("Push notification sent: %s", title)
        return True
