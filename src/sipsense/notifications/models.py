"""Data model for SipSense notifications and the inputs they are derived from.

`Notification` is the in-app advisory record kept by the active-notification
store. Sensor readings, daily stats and reminder plans arrive from outside and
are validated with pydantic at construction time.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, Field


class Priority(str, Enum):
    """Display priority of an in-app notification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    """Advisory severity; nothing in the engine branches on it."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    CRITICAL = "critical"


class PushPriority(IntEnum):
    """Priority hint passed to the push channel (ntfy scale)."""

    DEFAULT = 3
    HIGH = 4
    MAX = 5


class ReminderClass(str, Enum):
    """Logical class owning a set of scheduled reminders."""

    HEALTHY = "healthy"
    MEDICAL = "medical"


@dataclass
class Notification:
    """A single advisory notification, unique per `type` in the store."""

    type: str
    category: str
    title: str | None = None
    message: str | None = None
    icon: str | None = None
    priority: Priority = Priority.MEDIUM
    severity: Severity = Severity.INFO
    actionable: bool = False
    action: str | None = None
    snoozeable: bool = False
    sensor_based: bool = True
    subtype: str | None = None

    # Assigned by the store
    id: str | None = None
    timestamp: datetime | None = None
    updated: bool = False

    def merged_with(self, newer: "Notification") -> "Notification":
        """Return a copy of self overridden by every non-None field of `newer`."""
        values = {}
        for f in fields(self):
            new_value = getattr(newer, f.name)
            values[f.name] = new_value if new_value is not None else getattr(self, f.name)
        return Notification(**values)


class SensorSnapshot(BaseModel):
    """Latest reading from the bottle."""

    water_level: float = 100.0
    temperature: float | str | None = None
    is_connected: bool = True
    last_drink: datetime | None = None


class DailyStats(BaseModel):
    """Today's cumulative intake."""

    total_consumed: float = 0.0
    goal: float | None = None


class ReminderConfig(BaseModel):
    """A hydration reminder plan for one reminder class."""

    reminder_class: ReminderClass
    goal_ml: int = Field(default=0, ge=0)
    gap_hours: float = Field(gt=0)
    intake_ml: int | None = Field(default=None, ge=0)
    condition_name: str | None = None
    owner_id: str | None = None
