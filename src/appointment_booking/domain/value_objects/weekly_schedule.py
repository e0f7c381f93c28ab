"""Recurring weekly schedule value objects."""

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .time_window import TimeWindow

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Weekday(Enum):
    """Day of the week as persisted in schedules."""
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def of(cls, target_date: date) -> "Weekday":
        """Get the weekday of a calendar date."""
        return _WEEKDAYS[target_date.weekday()]


# date.weekday(): Monday == 0
_WEEKDAYS = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
)


def parse_clock(value: str) -> time:
    """Parse a zero-padded 24-hour HH:MM string."""
    if not isinstance(value, str):
        raise ValueError(f"Clock time must be a string in HH:MM format, got {value!r}")
    match = _CLOCK_PATTERN.match(value)
    if not match:
        raise ValueError(f"Clock time must be zero-padded HH:MM, got {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


@dataclass(frozen=True)
class ScheduleEntry:
    """One bookable window on a given weekday, in local clock time."""

    day: Weekday
    opens: time
    closes: time

    def __post_init__(self) -> None:
        """Validate entry."""
        if self.opens >= self.closes:
            raise ValueError(f"Schedule slot for {self.day.value}: start time must be before end time")

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleEntry":
        """Build an entry from its persisted shape {day, from, to}."""
        try:
            day = Weekday(str(data["day"]).upper())
            opens = parse_clock(data["from"])
            closes = parse_clock(data["to"])
        except KeyError as e:
            raise ValueError(f"Schedule slot is missing field {e.args[0]!r}") from e
        return cls(day=day, opens=opens, closes=closes)

    def to_dict(self) -> dict:
        """Serialize to the persisted shape."""
        return {
            "day": self.day.value,
            "from": self.opens.strftime("%H:%M"),
            "to": self.closes.strftime("%H:%M"),
        }

    def window_on(self, target_date: date) -> TimeWindow:
        """Anchor this entry to a calendar date."""
        return TimeWindow(
            start=datetime.combine(target_date, self.opens),
            end=datetime.combine(target_date, self.closes),
        )

    def within(self, other: "ScheduleEntry") -> bool:
        """Check whether this entry lies inside another entry for the same day."""
        return self.day == other.day and other.opens <= self.opens and self.closes <= other.closes


@dataclass(frozen=True)
class WeeklySchedule:
    """Ordered weekly schedule with at most one entry per weekday."""

    entries: Tuple[ScheduleEntry, ...]

    def __post_init__(self) -> None:
        """Reject duplicate days."""
        seen = set()
        for entry in self.entries:
            if entry.day in seen:
                raise ValueError(f"Schedule has more than one entry for {entry.day.value}")
            seen.add(entry.day)

    @classmethod
    def from_entries(cls, entries: Iterable[ScheduleEntry]) -> "WeeklySchedule":
        """Build a schedule from entries, keeping their order."""
        return cls(entries=tuple(entries))

    @classmethod
    def from_list(cls, data: Iterable[dict]) -> "WeeklySchedule":
        """Build a schedule from its persisted list shape."""
        return cls.from_entries(ScheduleEntry.from_dict(item) for item in data)

    def to_list(self) -> List[dict]:
        """Serialize to the persisted list shape."""
        return [entry.to_dict() for entry in self.entries]

    def entry_for(self, day: Weekday) -> Optional[ScheduleEntry]:
        """Get the entry for a weekday, if any."""
        for entry in self.entries:
            if entry.day == day:
                return entry
        return None

    def resolve_day_window(self, target_date: date) -> Optional[TimeWindow]:
        """Resolve the bookable window for a date, or None when the day is closed."""
        entry = self.entry_for(Weekday.of(target_date))
        if entry is None:
            return None
        return entry.window_on(target_date)

    def is_empty(self) -> bool:
        """Check whether the schedule has no entries."""
        return not self.entries

    def __len__(self) -> int:
        return len(self.entries)
