"""Hydration reminder scheduler.

Registers a fixed cadence of future reminders with the push channel and
keeps the returned handles per reminder class, so a class can be replaced
or cancelled as a unit.
"""

import logging
import math

from sipsense.notifications.models import PushPriority, ReminderClass, ReminderConfig
from sipsense.push.base import PushChannel

logger = logging.getLogger(__name__)

WAKING_HOURS = 16


def reminder_count(gap_hours: float, waking_hours: int = WAKING_HOURS) -> int:
    """Number of reminders that fit in the waking window."""
    if gap_hours <= 0:
        return 0
    return math.floor(waking_hours / gap_hours)


def calculate_intake(goal_ml: float, gap_hours: float, waking_hours: int = WAKING_HOURS) -> int:
    """Per-reminder intake, rounded up to the next 10 ml.

    Returns 0 when there is no goal or no reminder fits in the window.
    """
    count = reminder_count(gap_hours, waking_hours)
    if goal_ml <= 0 or count == 0:
        return 0
    return math.ceil(goal_ml / count / 10) * 10


def _reminder_content(config: ReminderConfig, amount: int) -> tuple[str, str, PushPriority, str]:
    """Title, body, priority and payload type for one reminder class."""
    if config.reminder_class == ReminderClass.MEDICAL:
        if config.condition_name:
            body = f"{config.condition_name}: Time to drink {amount}ml as prescribed."
        else:
            body = f"Time to drink {amount}ml as prescribed."
        return "Medical Hydration", body, PushPriority.MAX, "medical_hydration_reminder"

    body = f"Time to drink {amount}ml of water! Stay hydrated!"
    return "Hydration Reminder", body, PushPriority.HIGH, "hydration_reminder"


class ReminderScheduler:
    """Schedules and cancels reminder batches by class."""

    def __init__(self, channel: PushChannel, waking_hours: int = WAKING_HOURS) -> None:
        self._channel = channel
        self._waking_hours = waking_hours
        self._handles: dict[ReminderClass, list[str]] = {}

    def handles(self, reminder_class: ReminderClass) -> list[str]:
        """Handles currently tracked for a class, in reminder order."""
        return list(self._handles.get(reminder_class, []))

    async def schedule(self, config: ReminderConfig) -> bool:
        """Replace the reminders of `config.reminder_class` with a fresh batch.

        Returns:
            True on success, False if the channel is unavailable or failed.
        """
        if not self._channel.available:
            return False

        reminder_class = config.reminder_class
        registered: list[str] = []
        try:
            # Old batch must be gone before the new one is registered
            await self._cancel_class(reminder_class)

            count = reminder_count(config.gap_hours, self._waking_hours)
            if count == 0:
                logger.warning(
                    "Gap of %sh exceeds the %dh waking window, no %s reminders scheduled",
                    config.gap_hours, self._waking_hours, reminder_class.value,
                )

            amount = config.intake_ml
            if amount is None:
                amount = calculate_intake(config.goal_ml, config.gap_hours, self._waking_hours)
            title, body, priority, payload_type = _reminder_content(config, amount)
            gap_seconds = config.gap_hours * 3600

            # Handle order must match reminder order
            for number in range(1, count + 1):
                handle = await self._channel.schedule(
                    title,
                    body,
                    priority,
                    {
                        "type": payload_type,
                        "amount": amount,
                        "reminder_number": number,
                        "condition": config.condition_name,
                        "owner_id": config.owner_id,
                    },
                    gap_seconds * number,
                )
                registered.append(handle)

        except Exception:
            logger.exception("Error scheduling %s reminders", reminder_class.value)
            await self._discard(registered)
            return False

        self._handles[reminder_class] = registered
        logger.info("Scheduled %d %s reminders", len(registered), reminder_class.value)
        return True

    async def _discard(self, handles: list[str]) -> None:
        """Best-effort cancel of a half-registered batch."""
        for handle in handles:
            try:
                await self._channel.cancel(handle)
            except Exception as e:
                logger.warning("Could not cancel reminder %s: %s", handle, e)

    async def _cancel_class(self, reminder_class: ReminderClass) -> None:
        handles = self._handles.get(reminder_class)
        if not handles:
            return

        cancelled = 0
        while handles:
            # Tracked list shrinks only as the channel confirms each cancel
            await self._channel.cancel(handles[0])
            handles.pop(0)
            cancelled += 1

        del self._handles[reminder_class]
        logger.info("Cancelled %d %s reminders", cancelled, reminder_class.value)

    async def cancel(self, reminder_class: ReminderClass) -> None:
        """Cancel every reminder of a class. No-op if none are tracked."""
        if not self._channel.available:
            return

        try:
            await self._cancel_class(reminder_class)
        except Exception:
            logger.exception("Error cancelling %s reminders", reminder_class.value)

    async def cancel_all(self) -> None:
        """Cancel everything the channel has scheduled."""
        if not self._channel.available:
            return

        try:
            await self._channel.cancel_all()
        except Exception:
            logger.exception("Error cancelling all reminders")
            return

        self._handles.clear()
        logger.info("Cancelled all scheduled reminders")

    async def count(self) -> int:
        """Live count of everything scheduled on the channel, across classes."""
        if not self._channel.available:
            return 0

        try:
            return await self._channel.count_scheduled()
        except Exception:
            logger.exception("Error getting scheduled count")
            return 0
