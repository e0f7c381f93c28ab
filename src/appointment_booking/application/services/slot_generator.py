"""Slot generation: tiling a bookable window into fixed-duration candidate slots."""

from datetime import timedelta
from typing import Iterator

from ...domain.value_objects.time_window import TimeWindow


class SlotSequence:
    """Lazy, finite, restartable sequence of candidate slots.

    Each iteration starts again from the beginning of the window. A slot is
    emitted only if it ends at or before the window end.
    """

    def __init__(self, window: TimeWindow, duration_minutes: int):
        if duration_minutes <= 0:
            raise ValueError("Slot duration must be greater than 0")
        self._window = window
        self._step = timedelta(minutes=duration_minutes)

    @property
    def window(self) -> TimeWindow:
        return self._window

    def __iter__(self) -> Iterator[TimeWindow]:
        current = self._window.start
        while current + self._step <= self._window.end:
            yield TimeWindow(start=current, end=current + self._step)
            current += self._step

    def __len__(self) -> int:
        return int(self._window.duration // self._step)


class TimeSlotGenerator:
    """Service for generating candidate time slots."""

    def generate(self, window: TimeWindow, duration_minutes: int) -> SlotSequence:
        """Tile `window` into slots of `duration_minutes`."""
        return SlotSequence(window, duration_minutes)
