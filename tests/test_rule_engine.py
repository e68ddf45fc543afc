"""Tests for SensorRuleEngine — per-category rules, quiet hours, and escalation."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sipsense.notifications.models import (
    DailyStats,
    Notification,
    Priority,
    SensorSnapshot,
    Severity,
)
from sipsense.notifications.rules import (
    SensorRuleEngine,
    hours_until_end_of_day,
    parse_temperature,
)
from sipsense.notifications.store import ActiveNotificationStore

NOW = datetime(2026, 3, 1, 14, 0)  # 2pm, ~10h left in the day


@pytest.fixture
def store():
    return ActiveNotificationStore()


@pytest.fixture
def gate():
    gate = MagicMock()
    gate.try_send = AsyncMock(return_value=True)
    return gate


@pytest.fixture
def engine(store, gate):
    return SensorRuleEngine(store, gate)


def pushed_types(gate) -> list[str]:
    return [c.args[0] for c in gate.try_send.await_args_list]


def types(store) -> set[str]:
    return {n.type for n in store.snapshot()}


# ── Water Level ───────────────────────────────────────────────────────


class TestWaterLevel:
    @pytest.mark.asyncio
    async def test_low_level_raises_low_water_and_pushes(self, engine, store, gate):
        await engine.process(SensorSnapshot(water_level=10), None, quiet=False, now=NOW)

        low = store.get("low-water")
        assert low is not None
        assert low.priority == Priority.HIGH
        assert low.severity == Severity.CRITICAL
        assert low.action == "refill"
        assert not store.has_type("medium-water")
        assert pushed_types(gate) == ["low-water"]

    @pytest.mark.asyncio
    async def test_low_level_pushes_even_in_quiet_hours(self, engine, store, gate):
        await engine.process(SensorSnapshot(water_level=10), None, quiet=True, now=NOW)
        assert store.has_type("low-water")
        assert pushed_types(gate) == ["low-water"]

    @pytest.mark.asyncio
    async def test_medium_level_outside_quiet_hours(self, engine, store, gate):
        await engine.process(SensorSnapshot(water_level=40), None, quiet=False, now=NOW)
        assert store.has_type("medium-water")
        assert not store.has_type("low-water")
        assert pushed_types(gate) == []

    @pytest.mark.asyncio
    async def test_medium_level_suppressed_in_quiet_hours(self, engine, store):
        await engine.process(SensorSnapshot(water_level=40), None, quiet=True, now=NOW)
        assert not store.has_type("medium-water")

    @pytest.mark.asyncio
    async def test_full_bottle_clears_both(self, engine, store):
        store.upsert(Notification(type="low-water", category="bottle"))
        store.upsert(Notification(type="medium-water", category="bottle"))

        await engine.process(SensorSnapshot(water_level=80), None, quiet=False, now=NOW)

        assert not store.has_type("low-water")
        assert not store.has_type("medium-water")

    @pytest.mark.asyncio
    async def test_only_one_level_notification_at_a_time(self, engine, store):
        await engine.process(SensorSnapshot(water_level=40), None, quiet=False, now=NOW)
        await engine.process(SensorSnapshot(water_level=10), None, quiet=False, now=NOW)
        assert store.has_type("low-water")
        assert not store.has_type("medium-water")

        await engine.process(SensorSnapshot(water_level=30), None, quiet=False, now=NOW)
        assert store.has_type("medium-water")
        assert not store.has_type("low-water")

    @pytest.mark.asyncio
    async def test_boundaries(self, engine, store):
        await engine.process(SensorSnapshot(water_level=25), None, quiet=False, now=NOW)
        assert types(store) == {"medium-water"}
        await engine.process(SensorSnapshot(water_level=50), None, quiet=False, now=NOW)
        assert types(store) == set()


# ── Temperature ───────────────────────────────────────────────────────


class TestTemperature:
    @pytest.mark.asyncio
    async def test_warm_water(self, engine, store, gate):
        store.upsert(Notification(type="cold-water", category="temperature"))

        await engine.process(SensorSnapshot(temperature=35.26), None, quiet=False, now=NOW)

        warm = store.get("warm-water")
        assert warm is not None
        assert "35.3°C" in warm.message
        assert warm.priority == Priority.LOW
        assert not store.has_type("cold-water")
        assert pushed_types(gate) == []

    @pytest.mark.asyncio
    async def test_cold_water(self, engine, store):
        store.upsert(Notification(type="warm-water", category="temperature"))

        await engine.process(SensorSnapshot(temperature="6"), None, quiet=False, now=NOW)

        cold = store.get("cold-water")
        assert cold is not None
        assert cold.severity == Severity.SUCCESS
        assert "6.0°C" in cold.message
        assert not store.has_type("warm-water")

    @pytest.mark.parametrize("reading", ["NaN", None, "warm", float("nan"), ""])
    @pytest.mark.asyncio
    async def test_invalid_reading_clears_both(self, engine, store, reading):
        store.upsert(Notification(type="warm-water", category="temperature"))
        store.upsert(Notification(type="cold-water", category="temperature"))

        await engine.process(SensorSnapshot(temperature=reading), None, quiet=False, now=NOW)

        assert not store.has_type("warm-water")
        assert not store.has_type("cold-water")

    @pytest.mark.parametrize("reading", [10, 20, 30])
    @pytest.mark.asyncio
    async def test_normal_range_clears_both(self, engine, store, reading):
        store.upsert(Notification(type="warm-water", category="temperature"))
        await engine.process(SensorSnapshot(temperature=reading), None, quiet=False, now=NOW)
        assert not store.has_type("warm-water")
        assert not store.has_type("cold-water")

    @pytest.mark.asyncio
    async def test_quiet_hours_clear_temperature_alerts(self, engine, store):
        await engine.process(SensorSnapshot(temperature=40), None, quiet=False, now=NOW)
        assert store.has_type("warm-water")
        await engine.process(SensorSnapshot(temperature=40), None, quiet=True, now=NOW)
        assert not store.has_type("warm-water")


class TestParseTemperature:
    def test_parses_numbers_and_numeric_strings(self):
        assert parse_temperature(21.5) == 21.5
        assert parse_temperature("21.5") == 21.5
        assert parse_temperature(3) == 3.0

    def test_rejects_unusable_values(self):
        for raw in (None, "NaN", "inf", "abc", True, [], float("nan")):
            assert parse_temperature(raw) is None


# ── Hydration ─────────────────────────────────────────────────────────


class TestHydration:
    @pytest.mark.asyncio
    async def test_no_last_drink_leaves_category_alone(self, engine, store, gate):
        store.upsert(Notification(type="drink-reminder", category="hydration"))
        await engine.process(SensorSnapshot(last_drink=None), None, quiet=False, now=NOW)
        assert store.has_type("drink-reminder")
        assert pushed_types(gate) == []

    @pytest.mark.asyncio
    async def test_over_an_hour_raises_reminder_without_push(self, engine, store, gate):
        sensor = SensorSnapshot(last_drink=NOW - timedelta(minutes=90))
        await engine.process(sensor, None, quiet=False, now=NOW)

        reminder = store.get("drink-reminder")
        assert reminder is not None
        assert "1 hour(s)" in reminder.message
        assert reminder.snoozeable is True
        assert reminder.action == "drink"
        assert pushed_types(gate) == []

    @pytest.mark.asyncio
    async def test_over_two_hours_pushes(self, engine, store, gate):
        sensor = SensorSnapshot(last_drink=NOW - timedelta(hours=3, minutes=20))
        await engine.process(sensor, None, quiet=False, now=NOW)

        assert "3 hour(s)" in store.get("drink-reminder").message
        assert pushed_types(gate) == ["drink-reminder"]

    @pytest.mark.asyncio
    async def test_quiet_hours_do_not_suppress_hydration(self, engine, store, gate):
        sensor = SensorSnapshot(last_drink=NOW - timedelta(hours=3))
        await engine.process(sensor, None, quiet=True, now=NOW)
        assert store.has_type("drink-reminder")
        assert pushed_types(gate) == ["drink-reminder"]

    @pytest.mark.asyncio
    async def test_recent_drink_clears_reminder(self, engine, store):
        store.upsert(Notification(type="drink-reminder", category="hydration"))
        sensor = SensorSnapshot(last_drink=NOW - timedelta(minutes=30))
        await engine.process(sensor, None, quiet=False, now=NOW)
        assert not store.has_type("drink-reminder")

    @pytest.mark.asyncio
    async def test_exactly_one_hour_is_not_overdue(self, engine, store):
        sensor = SensorSnapshot(last_drink=NOW - timedelta(hours=1))
        await engine.process(sensor, None, quiet=False, now=NOW)
        assert not store.has_type("drink-reminder")


# ── Goal Progress ─────────────────────────────────────────────────────


class TestGoalProgress:
    @pytest.mark.asyncio
    async def test_no_goal_skips_category(self, engine, store):
        store.upsert(Notification(type="almost-there", category="progress"))
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=100, goal=0), False, NOW)
        await engine.process(SensorSnapshot(), None, False, NOW)
        assert store.has_type("almost-there")

    @pytest.mark.asyncio
    async def test_goal_achieved_pushes_only_once(self, engine, store, gate):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=2000, goal=2000), False, NOW)
        first = store.get("goal-achieved")
        assert first is not None
        assert first.sensor_based is False

        await engine.process(SensorSnapshot(), DailyStats(total_consumed=2200, goal=2000), False, NOW)

        assert pushed_types(gate) == ["goal-achieved"]
        assert store.get("goal-achieved").id == first.id

    @pytest.mark.asyncio
    async def test_goal_achieved_in_quiet_hours(self, engine, store, gate):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=2500, goal=2000), True, NOW)
        assert store.has_type("goal-achieved")
        assert pushed_types(gate) == ["goal-achieved"]

    @pytest.mark.asyncio
    async def test_almost_there(self, engine, store, gate):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=1600, goal=2000), False, NOW)
        almost = store.get("almost-there")
        assert almost is not None
        assert "80%" in almost.message
        assert pushed_types(gate) == []

    @pytest.mark.asyncio
    async def test_almost_there_suppressed_in_quiet_hours(self, engine, store):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=1600, goal=2000), True, NOW)
        assert not store.has_type("almost-there")

    @pytest.mark.asyncio
    async def test_low_progress_with_time_left(self, engine, store):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=200, goal=2000), False, NOW)
        low = store.get("low-progress")
        assert low is not None
        assert "10%" in low.message
        assert low.snoozeable is True

    @pytest.mark.asyncio
    async def test_low_progress_not_raised_late_in_day(self, engine, store):
        late = datetime(2026, 3, 1, 22, 30)
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=200, goal=2000), False, late)
        assert not store.has_type("low-progress")

    @pytest.mark.asyncio
    async def test_normal_band_clears_progress_notifications(self, engine, store):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=1600, goal=2000), False, NOW)
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=1000, goal=2000), False, NOW)
        assert not store.has_type("almost-there")
        assert not store.has_type("low-progress")

    @pytest.mark.asyncio
    async def test_goal_achieved_supersedes_almost_there(self, engine, store):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=1600, goal=2000), False, NOW)
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=2000, goal=2000), False, NOW)
        assert types(store) == {"goal-achieved"}

    @pytest.mark.asyncio
    async def test_falling_below_goal_rearms_achievement(self, engine, store, gate):
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=2000, goal=2000), False, NOW)
        await engine.process(SensorSnapshot(), DailyStats(total_consumed=0, goal=2000), False, NOW)
        assert not store.has_type("goal-achieved")

        await engine.process(SensorSnapshot(), DailyStats(total_consumed=2000, goal=2000), False, NOW)
        assert pushed_types(gate) == ["goal-achieved", "goal-achieved"]


class TestHoursUntilEndOfDay:
    def test_afternoon(self):
        assert hours_until_end_of_day(NOW) == pytest.approx(10.0, abs=0.01)

    def test_just_before_midnight(self):
        assert hours_until_end_of_day(datetime(2026, 3, 1, 23, 59, 59)) < 0.01


# ── Connection ────────────────────────────────────────────────────────


class TestConnection:
    @pytest.mark.asyncio
    async def test_disconnected_outside_quiet_hours(self, engine, store):
        await engine.process(SensorSnapshot(is_connected=False), None, quiet=False, now=NOW)
        disconnected = store.get("disconnected")
        assert disconnected is not None
        assert disconnected.action == "connect"

    @pytest.mark.asyncio
    async def test_disconnected_in_quiet_hours_is_not_shown(self, engine, store):
        store.upsert(Notification(type="disconnected", category="connection"))
        await engine.process(SensorSnapshot(is_connected=False), None, quiet=True, now=NOW)
        assert not store.has_type("disconnected")

    @pytest.mark.asyncio
    async def test_reconnect_clears(self, engine, store):
        await engine.process(SensorSnapshot(is_connected=False), None, quiet=False, now=NOW)
        await engine.process(SensorSnapshot(is_connected=True), None, quiet=False, now=NOW)
        assert not store.has_type("disconnected")


# ── Whole-run behavior ────────────────────────────────────────────────


class TestProcess:
    @pytest.mark.asyncio
    async def test_categories_are_evaluated_together(self, engine, store):
        sensor = SensorSnapshot(
            water_level=10,
            temperature=35,
            is_connected=False,
            last_drink=NOW - timedelta(hours=2, minutes=30),
        )
        await engine.process(sensor, DailyStats(total_consumed=1700, goal=2000), False, NOW)
        assert types(store) == {
            "low-water", "warm-water", "drink-reminder", "almost-there", "disconnected",
        }

    @pytest.mark.asyncio
    async def test_failing_category_does_not_stop_others(self, engine, store):
        with patch.object(engine, "_check_temperature", AsyncMock(side_effect=RuntimeError)):
            await engine.process(SensorSnapshot(is_connected=False), None, False, NOW)
        assert store.has_type("disconnected")

    @pytest.mark.asyncio
    async def test_records_last_processed(self, engine):
        assert engine.last_processed is None
        await engine.process(SensorSnapshot(), None, quiet=False, now=NOW)
        assert engine.last_processed == NOW
