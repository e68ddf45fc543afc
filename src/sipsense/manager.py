"""HydrationNotifier — the one engine object an application run owns.

Wires the active-notification store, push gate, rule engine, debouncer and
reminder scheduler together and is the only way callers reach them.
Create it once at start-up and pass it to whatever needs it.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from sipsense.config import SipSenseConfig, get_config
from sipsense.notifications.debounce import Debouncer
from sipsense.notifications.models import (
    DailyStats,
    Notification,
    ReminderClass,
    ReminderConfig,
    SensorSnapshot,
)
from sipsense.notifications.quiet_hours import in_quiet_hours
from sipsense.notifications.rules import SensorRuleEngine
from sipsense.notifications.store import ActiveNotificationStore
from sipsense.push.base import PushChannel
from sipsense.push.factory import build_push_channel
from sipsense.push.gate import PushDispatchGate
from sipsense.reminders.scheduler import ReminderScheduler

logger = logging.getLogger(__name__)

SENSOR_DEBOUNCE_KEY = "sensor"


class HydrationNotifier:
    """Notification engine for one smart bottle."""

    def __init__(
        self,
        config: SipSenseConfig | None = None,
        channel: PushChannel | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the engine.

        Args:
            config: SipSenseConfig instance (uses the shared one if None).
            channel: Push channel; built from config if None.
            clock: Wall-clock source used for evaluation time and quiet hours.
        """
        self._config = config or get_config()
        self._channel = channel if channel is not None else build_push_channel(self._config)
        self._clock = clock

        self._store = ActiveNotificationStore(clock=clock)
        self._gate = PushDispatchGate(self._channel, self._config.push_cooldown_seconds)
        self._engine = SensorRuleEngine(self._store, self._gate)
        self._debouncer = Debouncer(self._config.debounce_seconds)
        self._reminders = ReminderScheduler(self._channel, self._config.waking_hours)
        # One rule-engine run at a time; a run can pause on a push send
        self._evaluation_lock = asyncio.Lock()

        logger.info(
            "HydrationNotifier initialized (push=%s, available=%s)",
            self._channel.name, self._channel.available,
        )

    @property
    def push_channel(self) -> PushChannel:
        return self._channel

    @property
    def last_sensor_update(self) -> datetime | None:
        """When the rule engine last finished a run."""
        return self._engine.last_processed

    # ── Sensor flow ────────────────────────────────────────────────

    def update_from_sensor_data(
        self,
        sensor: SensorSnapshot,
        stats: DailyStats | None = None,
        quiet_hours_enabled: bool | None = None,
        quiet_hours_start: int | None = None,
        quiet_hours_end: int | None = None,
    ) -> None:
        """Queue a reading for evaluation once updates settle.

        Arguments left as None fall back to the configured quiet hours.
        Must be called from inside the running event loop.
        """
        enabled = (
            self._config.quiet_hours_enabled if quiet_hours_enabled is None
            else quiet_hours_enabled
        )
        start = self._config.quiet_hours_start if quiet_hours_start is None else quiet_hours_start
        end = self._config.quiet_hours_end if quiet_hours_end is None else quiet_hours_end

        async def _evaluate() -> None:
            async with self._evaluation_lock:
                now = self._clock()
                quiet = enabled and in_quiet_hours(now.hour, start, end)
                await self._engine.process(sensor, stats, quiet, now)

        self._debouncer.debounce(SENSOR_DEBOUNCE_KEY, _evaluate)

    async def flush(self) -> None:
        """Wait until every queued reading has been evaluated."""
        await self._debouncer.join()

    # ── Active notifications ───────────────────────────────────────

    def subscribe(self, callback: Callable[[list[Notification]], None]) -> Callable[[], None]:
        """Receive the full notification list after every change."""
        return self._store.subscribe(callback)

    def get_active_notifications(self) -> list[Notification]:
        return self._store.snapshot()

    def has_active_notification(self, type_: str) -> bool:
        return self._store.has_type(type_)

    def dismiss_notification(self, notification_id: str) -> bool:
        """Remove one notification by id, e.g. when the user swipes it away."""
        return self._store.remove_by_id(notification_id)

    def clear_notifications(self) -> None:
        self._store.clear_all()

    # ── Scheduled reminders ────────────────────────────────────────

    async def schedule_hydration_reminders(self, config: ReminderConfig) -> bool:
        return await self._reminders.schedule(config)

    async def cancel_scheduled_reminders(self, reminder_class: ReminderClass) -> None:
        await self._reminders.cancel(reminder_class)

    async def cancel_all_scheduled_reminders(self) -> None:
        await self._reminders.cancel_all()

    async def get_scheduled_count(self) -> int:
        return await self._reminders.count()

    # ── Teardown ───────────────────────────────────────────────────

    def close(self) -> None:
        """Cancel pending evaluations and drop all subscribers."""
        self._debouncer.cancel_all()
        self._store.clear_listeners()
        logger.info("HydrationNotifier closed")
