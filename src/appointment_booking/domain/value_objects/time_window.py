"""Half-open time window value object and overlap arithmetic."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import List


def to_wall_clock(value: datetime, zone: tzinfo = timezone.utc) -> datetime:
    """Convert to a naive wall-clock time in `zone`; naive values are already local."""
    if value.tzinfo is not None:
        return value.astimezone(zone).replace(tzinfo=None)
    return value


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Return True if the half-open intervals [a_start, a_end) and [b_start, b_end) intersect.

    Back-to-back intervals (one ending exactly where the other starts) do not overlap.
    """
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class TimeWindow:
    """Immutable half-open interval [start, end)."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        """Validate window bounds."""
        if self.start >= self.end:
            raise ValueError("Window start must be before window end")

    @classmethod
    def of_minutes(cls, start: datetime, minutes: int) -> "TimeWindow":
        """Create a window starting at `start` lasting `minutes`."""
        return cls(start=start, end=start + timedelta(minutes=minutes))

    @classmethod
    def contiguous(cls, start: datetime, duration_minutes: int, count: int) -> List["TimeWindow"]:
        """Build `count` back-to-back windows of `duration_minutes` starting at `start`."""
        if duration_minutes <= 0:
            raise ValueError("Duration must be positive")
        if count < 1:
            raise ValueError("Count must be at least 1")
        step = timedelta(minutes=duration_minutes)
        return [cls(start=start + step * i, end=start + step * (i + 1)) for i in range(count)]

    @property
    def duration(self) -> timedelta:
        """Get window length."""
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        """Check whether this window intersects another."""
        return overlaps(self.start, self.end, other.start, other.end)

    def overlaps_range(self, start: datetime, end: datetime) -> bool:
        """Check whether this window intersects [start, end)."""
        return overlaps(self.start, self.end, start, end)

    def contains(self, other: "TimeWindow") -> bool:
        """Check whether another window lies entirely inside this one."""
        return self.start <= other.start and other.end <= self.end

    def format_time_range(self) -> str:
        """Get formatted time range string."""
        return f"{self.start.strftime('%H:%M')} - {self.end.strftime('%H:%M')}"
