"""Unit tests for slot generation."""

import pytest
from datetime import datetime

from appointment_booking.application.services.slot_generator import TimeSlotGenerator
from appointment_booking.domain.value_objects.time_window import TimeWindow


class TestTimeSlotGenerator:
    """Test cases for TimeSlotGenerator."""

    def test_monday_morning_half_hour_slots(self):
        """09:00-12:00 with 30-minute slots yields six slots."""
        window = TimeWindow(start=datetime(2025, 10, 6, 9, 0), end=datetime(2025, 10, 6, 12, 0))

        slots = list(TimeSlotGenerator().generate(window, 30))

        assert len(slots) == 6
        assert slots[0] == TimeWindow(start=datetime(2025, 10, 6, 9, 0), end=datetime(2025, 10, 6, 9, 30))
        assert slots[-1] == TimeWindow(start=datetime(2025, 10, 6, 11, 30), end=datetime(2025, 10, 6, 12, 0))

    def test_partial_trailing_slot_is_dropped(self):
        """A slot is only emitted when it ends at or before the window end."""
        window = TimeWindow(start=datetime(2025, 10, 6, 9, 0), end=datetime(2025, 10, 6, 10, 50))

        slots = list(TimeSlotGenerator().generate(window, 30))

        assert len(slots) == 3
        assert slots[-1].end == datetime(2025, 10, 6, 10, 30)

    def test_sequence_is_restartable_and_sized(self):
        window = TimeWindow(start=datetime(2025, 10, 6, 9, 0), end=datetime(2025, 10, 6, 11, 0))
        sequence = TimeSlotGenerator().generate(window, 60)

        assert list(sequence) == list(sequence)
        assert len(sequence) == 2

    def test_duration_longer_than_window_yields_nothing(self):
        window = TimeWindow(start=datetime(2025, 10, 6, 9, 0), end=datetime(2025, 10, 6, 9, 45))

        assert list(TimeSlotGenerator().generate(window, 60)) == []

    def test_rejects_non_positive_duration(self):
        window = TimeWindow(start=datetime(2025, 10, 6, 9, 0), end=datetime(2025, 10, 6, 10, 0))

        with pytest.raises(ValueError, match="Slot duration must be greater than 0"):
            TimeSlotGenerator().generate(window, 0)
