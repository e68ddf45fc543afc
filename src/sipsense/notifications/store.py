"""Active-notification store for SipSense.

Holds at most one notification per logical type. Every mutation that
changes something hands the full current list to subscribers.
"""

import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from sipsense.notifications.models import Notification

logger = logging.getLogger(__name__)

Listener = Callable[[list[Notification]], None]


class ActiveNotificationStore:
    """Keyed notification collection with change subscriptions."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._entries: dict[str, Notification] = {}
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()
        self._clock = clock
        self._seq = itertools.count(1)

    # ── Subscriptions ──────────────────────────────────────────────

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def clear_listeners(self) -> None:
        """Drop every subscriber."""
        with self._lock:
            self._listeners.clear()

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            current = list(self._entries.values())
        for callback in listeners:
            try:
                callback(list(current))
            except Exception:
                logger.exception("Notification listener failed")

    # ── Mutations ──────────────────────────────────────────────────

    def _generate_id(self, type_: str, subtype: str | None, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        return f"{type_}_{subtype or ''}_{millis}_{next(self._seq)}"

    def upsert(self, notification: Notification) -> Notification:
        """Add a notification, or merge it into the existing one of the same type."""
        now = self._clock()
        with self._lock:
            existing = self._entries.get(notification.type)
            if existing is not None:
                stored = existing.merged_with(notification)
                stored = replace(stored, id=existing.id, timestamp=now, updated=True)
                action = "Updated"
            else:
                stored = replace(
                    notification,
                    id=self._generate_id(notification.type, notification.subtype, now),
                    timestamp=now,
                    updated=False,
                )
                action = "Added"
            self._entries[notification.type] = stored

        logger.debug("%s notification: %s", action, notification.type)
        self._notify()
        return stored

    def remove_by_id(self, notification_id: str) -> bool:
        """Remove one notification by id. Returns False if it was not present."""
        with self._lock:
            match = next(
                (t for t, n in self._entries.items() if n.id == notification_id),
                None,
            )
            if match is None:
                return False
            del self._entries[match]

        logger.debug("Removed notification: %s", notification_id)
        self._notify()
        return True

    def clear_by_type(self, type_: str) -> int:
        """Remove every notification of a logical type. Returns how many were removed."""
        with self._lock:
            doomed = [key for key, n in self._entries.items() if n.type == type_]
            for key in doomed:
                del self._entries[key]

        if doomed:
            logger.debug("Cleared %d notification(s) of type: %s", len(doomed), type_)
            self._notify()
        return len(doomed)

    def clear_all(self) -> None:
        """Remove everything."""
        with self._lock:
            self._entries.clear()
        logger.debug("Cleared all notifications")
        self._notify()

    # ── Queries ────────────────────────────────────────────────────

    def snapshot(self) -> list[Notification]:
        """Return the current notifications. Order carries no meaning."""
        with self._lock:
            return list(self._entries.values())

    def get(self, type_: str) -> Notification | None:
        """Return the live notification of a type, if any."""
        with self._lock:
            return self._entries.get(type_)

    def has_type(self, type_: str) -> bool:
        """Check if a notification of this type is active."""
        with self._lock:
            return type_ in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
