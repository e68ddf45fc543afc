"""Sensor rule engine — turns one reading into store mutations and pushes.

Each run re-evaluates every category from the inputs alone. Categories are
independent: each one decides its own add/clear, and a failure in one does
not stop the others.
"""

import logging
import math
from datetime import datetime, timedelta

from sipsense.notifications.models import (
    DailyStats,
    Notification,
    Priority,
    PushPriority,
    SensorSnapshot,
    Severity,
)
from sipsense.notifications.store import ActiveNotificationStore
from sipsense.push.gate import PushDispatchGate

logger = logging.getLogger(__name__)

LOW_WATER_LEVEL = 25
MEDIUM_WATER_LEVEL = 50
WARM_WATER_C = 30.0
COLD_WATER_C = 10.0
DRINK_REMINDER_AFTER = timedelta(hours=1)
DRINK_PUSH_AFTER = timedelta(hours=2)
ALMOST_THERE_PCT = 75
LOW_PROGRESS_PCT = 25
LOW_PROGRESS_MIN_HOURS_LEFT = 2


def parse_temperature(raw: object) -> float | None:
    """Parse a raw temperature reading. Returns None when it isn't a usable number."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def hours_until_end_of_day(now: datetime) -> float:
    """Hours left before 23:59:59.999999 of `now`'s day."""
    end_of_day = now.replace(hour=23, minute=59, second=59, microsecond=999999)
    return (end_of_day - now).total_seconds() / 3600


def _elapsed(now: datetime, then: datetime) -> timedelta:
    # Mixed naive/aware timestamps are both read as local time
    if (now.tzinfo is None) != (then.tzinfo is None):
        now, then = now.astimezone(), then.astimezone()
    return now - then


class SensorRuleEngine:
    """Fixed rule table over bottle, temperature, hydration, progress and connection."""

    def __init__(self, store: ActiveNotificationStore, gate: PushDispatchGate) -> None:
        self._store = store
        self._gate = gate
        self.last_processed: datetime | None = None

    async def process(
        self,
        sensor: SensorSnapshot,
        stats: DailyStats | None,
        quiet: bool,
        now: datetime | None = None,
    ) -> None:
        """Evaluate every category against one reading.

        Args:
            sensor: Latest bottle reading.
            stats: Today's intake, or None if unknown.
            quiet: Whether quiet hours are in effect right now.
            now: Evaluation time (defaults to the local clock).
        """
        now = now or datetime.now()

        logger.debug(
            "Processing sensor data: level=%s temp=%r connected=%s quiet=%s",
            sensor.water_level, sensor.temperature, sensor.is_connected, quiet,
        )

        for name, check in (
            ("bottle", lambda: self._check_water_level(sensor, quiet)),
            ("temperature", lambda: self._check_temperature(sensor, quiet)),
            ("hydration", lambda: self._check_hydration(sensor, now)),
            ("progress", lambda: self._check_progress(stats, quiet, now)),
            ("connection", lambda: self._check_connection(sensor, quiet)),
        ):
            try:
                await check()
            except Exception:
                logger.exception("Rule category %s failed", name)

        self.last_processed = now

    # ── Bottle ─────────────────────────────────────────────────────

    async def _check_water_level(self, sensor: SensorSnapshot, quiet: bool) -> None:
        level = sensor.water_level

        if level < LOW_WATER_LEVEL:
            self._store.clear_by_type("medium-water")
            self._store.upsert(Notification(
                type="low-water",
                category="bottle",
                icon="water",
                title="Bottle Running Low",
                message="Your bottle is running low! Time for a refill.",
                priority=Priority.HIGH,
                severity=Severity.CRITICAL,
                actionable=True,
                action="refill",
                sensor_based=True,
            ))
            # Escalated even during quiet hours
            await self._gate.try_send(
                "low-water",
                "Bottle Running Low",
                "Your water bottle is almost empty. Time for a refill!",
                PushPriority.HIGH,
                {"priority": Priority.HIGH.value},
            )
        elif level < MEDIUM_WATER_LEVEL and not quiet:
            self._store.clear_by_type("low-water")
            self._store.upsert(Notification(
                type="medium-water",
                category="bottle",
                icon="water-outline",
                title="Water Level Medium",
                message="Your bottle is half empty. Consider refilling soon.",
                priority=Priority.MEDIUM,
                severity=Severity.WARNING,
                actionable=False,
                sensor_based=True,
            ))
        else:
            self._store.clear_by_type("low-water")
            self._store.clear_by_type("medium-water")

    # ── Temperature ────────────────────────────────────────────────

    async def _check_temperature(self, sensor: SensorSnapshot, quiet: bool) -> None:
        temperature = parse_temperature(sensor.temperature)

        if temperature is not None and temperature > WARM_WATER_C and not quiet:
            self._store.upsert(Notification(
                type="warm-water",
                category="temperature",
                icon="thermometer-outline",
                title="Water Temperature High",
                message=f"Water is {temperature:.1f}°C. Consider adding ice.",
                priority=Priority.LOW,
                severity=Severity.INFO,
                sensor_based=True,
            ))
            self._store.clear_by_type("cold-water")
        elif temperature is not None and temperature < COLD_WATER_C and not quiet:
            self._store.upsert(Notification(
                type="cold-water",
                category="temperature",
                icon="snow-outline",
                title="Refreshingly Cold",
                message=f"Your water is {temperature:.1f}°C. Perfect for hydration!",
                priority=Priority.LOW,
                severity=Severity.SUCCESS,
                sensor_based=True,
            ))
            self._store.clear_by_type("warm-water")
        else:
            # Normal range, quiet hours, or no usable reading
            self._store.clear_by_type("warm-water")
            self._store.clear_by_type("cold-water")

    # ── Hydration ──────────────────────────────────────────────────

    async def _check_hydration(self, sensor: SensorSnapshot, now: datetime) -> None:
        if sensor.last_drink is None:
            return

        elapsed = _elapsed(now, sensor.last_drink)
        if elapsed <= DRINK_REMINDER_AFTER:
            self._store.clear_by_type("drink-reminder")
            return

        hours = int(elapsed // timedelta(hours=1))
        self._store.upsert(Notification(
            type="drink-reminder",
            category="hydration",
            icon="time-outline",
            title="Hydration Reminder",
            message=f"It's been {hours} hour(s) since your last drink. Stay hydrated!",
            priority=Priority.HIGH,
            severity=Severity.CRITICAL,
            actionable=True,
            action="drink",
            snoozeable=True,
            sensor_based=True,
        ))

        # Quiet hours do not hold this one back
        if elapsed > DRINK_PUSH_AFTER:
            await self._gate.try_send(
                "drink-reminder",
                "Time to Hydrate!",
                f"It's been {hours} hours since your last drink.",
                PushPriority.HIGH,
                {"priority": Priority.HIGH.value},
            )

    # ── Goal progress ──────────────────────────────────────────────

    async def _check_progress(
        self, stats: DailyStats | None, quiet: bool, now: datetime,
    ) -> None:
        if stats is None or not stats.goal or stats.goal <= 0:
            return

        progress = stats.total_consumed / stats.goal * 100

        if progress >= 100:
            self._store.clear_by_type("almost-there")
            self._store.clear_by_type("low-progress")
            if self._store.has_type("goal-achieved"):
                return
            self._store.upsert(Notification(
                type="goal-achieved",
                category="achievement",
                icon="checkmark-circle",
                title="Goal Achieved!",
                message="Congratulations! You've reached your daily hydration goal!",
                priority=Priority.HIGH,
                severity=Severity.SUCCESS,
                actionable=True,
                action="celebrate",
                sensor_based=False,
            ))
            await self._gate.try_send(
                "goal-achieved",
                "Goal Achieved!",
                f"Congratulations! You've reached your {stats.goal:g}ml daily goal!",
                PushPriority.HIGH,
                {"priority": Priority.HIGH.value},
            )
            return

        # Below the goal again (new day or raised goal): re-arm the achievement
        self._store.clear_by_type("goal-achieved")

        if progress >= ALMOST_THERE_PCT and not quiet:
            self._store.upsert(Notification(
                type="almost-there",
                category="progress",
                icon="trending-up",
                title="Almost There!",
                message=f"You're {progress:.0f}% towards your goal. Keep it up!",
                priority=Priority.MEDIUM,
                severity=Severity.INFO,
                sensor_based=False,
            ))
        else:
            self._store.clear_by_type("almost-there")

        if (
            progress < LOW_PROGRESS_PCT
            and not quiet
            and hours_until_end_of_day(now) > LOW_PROGRESS_MIN_HOURS_LEFT
        ):
            self._store.upsert(Notification(
                type="low-progress",
                category="progress",
                icon="alert-circle-outline",
                title="Low Daily Progress",
                message=f"You're only at {progress:.0f}% of your goal. Drink more water!",
                priority=Priority.MEDIUM,
                severity=Severity.WARNING,
                actionable=True,
                action="drink",
                snoozeable=True,
                sensor_based=False,
            ))
        else:
            self._store.clear_by_type("low-progress")

    # ── Connection ─────────────────────────────────────────────────

    async def _check_connection(self, sensor: SensorSnapshot, quiet: bool) -> None:
        if sensor.is_connected or quiet:
            # Connected, or the user is assumed asleep
            self._store.clear_by_type("disconnected")
            return

        self._store.upsert(Notification(
            type="disconnected",
            category="connection",
            icon="bluetooth-outline",
            title="Bottle Disconnected",
            message="Your smart bottle is not connected. Connect to track your hydration.",
            priority=Priority.MEDIUM,
            severity=Severity.WARNING,
            actionable=True,
            action="connect",
            sensor_based=True,
        ))
