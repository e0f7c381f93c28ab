"""Time slot value objects for availability display."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from .time_window import TimeWindow
from .weekly_schedule import Weekday


@dataclass(frozen=True)
class TimeSlot:
    """Immutable value object representing a bookable slot and its free capacity."""

    start_time: datetime
    end_time: datetime
    available_count: int = 1

    def __post_init__(self) -> None:
        """Validate time slot data."""
        if self.start_time >= self.end_time:
            raise ValueError("Start time must be before end time")
        if self.available_count < 0:
            raise ValueError("Available count cannot be negative")

    @classmethod
    def from_window(cls, window: TimeWindow, available_count: int) -> "TimeSlot":
        """Create a slot from a candidate window."""
        return cls(start_time=window.start, end_time=window.end, available_count=available_count)

    @property
    def is_available(self) -> bool:
        """Check if the slot can take at least one more booking."""
        return self.available_count > 0

    @property
    def window(self) -> TimeWindow:
        """Get the slot as a time window."""
        return TimeWindow(start=self.start_time, end=self.end_time)

    @property
    def time_range(self) -> str:
        """Get formatted time range string."""
        return f"{self.start_time.strftime('%H:%M')} - {self.end_time.strftime('%H:%M')}"


@dataclass(frozen=True)
class DayAvailability:
    """Available slots of one appointment on one date."""

    date: date
    day_of_week: Weekday
    slots: List[TimeSlot] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        """Check whether the appointment has no schedule on this day."""
        return self.message is not None and not self.slots
