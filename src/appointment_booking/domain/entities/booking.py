"""Booking entity for appointment reservations."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from ..value_objects.time_window import TimeWindow


class BookingStatus(Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class Booking:
    """Booking entity representing a reservation of one or more contiguous slots."""

    def __init__(
        self,
        appointment_id: UUID,
        booker_user_id: UUID,
        start_time: datetime,
        end_time: datetime,
        number_of_slots: int = 1,
        resource_id: Optional[UUID] = None,
        assigned_provider_id: Optional[UUID] = None,
        booking_id: Optional[UUID] = None,
        status: BookingStatus = BookingStatus.PENDING,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        total_amount: Decimal = Decimal("0"),
        user_responses: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        if start_time >= end_time:
            raise ValueError("Booking start time must be before end time")
        if number_of_slots < 1:
            raise ValueError("Number of slots must be at least 1")
        if (resource_id is None) == (assigned_provider_id is None):
            raise ValueError("Booking must reference exactly one of resource or assigned provider")

        self._id = booking_id or uuid4()
        self._appointment_id = appointment_id
        self._booker_user_id = booker_user_id
        self._start_time = start_time
        self._end_time = end_time
        self._number_of_slots = number_of_slots
        self._resource_id = resource_id
        self._assigned_provider_id = assigned_provider_id
        self._status = status
        self._payment_status = payment_status
        self._total_amount = total_amount
        self._user_responses = dict(user_responses) if user_responses else None
        self._created_at = created_at or datetime.utcnow()
        self._updated_at = updated_at or datetime.utcnow()

    @property
    def id(self) -> UUID:
        """Get booking ID."""
        return self._id

    @property
    def appointment_id(self) -> UUID:
        """Get appointment type ID."""
        return self._appointment_id

    @property
    def booker_user_id(self) -> UUID:
        """Get ID of the user who made the booking."""
        return self._booker_user_id

    @property
    def start_time(self) -> datetime:
        return self._start_time

    @property
    def end_time(self) -> datetime:
        return self._end_time

    @property
    def number_of_slots(self) -> int:
        return self._number_of_slots

    @property
    def resource_id(self) -> Optional[UUID]:
        return self._resource_id

    @property
    def assigned_provider_id(self) -> Optional[UUID]:
        return self._assigned_provider_id

    @property
    def status(self) -> BookingStatus:
        """Get booking status."""
        return self._status

    @property
    def payment_status(self) -> PaymentStatus:
        """Get payment status."""
        return self._payment_status

    @property
    def total_amount(self) -> Decimal:
        return self._total_amount

    @property
    def user_responses(self) -> Optional[Dict[str, Any]]:
        """Answers to the appointment's intake questions, keyed by question ID."""
        return dict(self._user_responses) if self._user_responses else None

    @property
    def created_at(self) -> datetime:
        """Get creation timestamp."""
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        """Get last update timestamp."""
        return self._updated_at

    @property
    def window(self) -> TimeWindow:
        """Get the reserved interval [start_time, end_time)."""
        return TimeWindow(start=self._start_time, end=self._end_time)

    @property
    def is_active(self) -> bool:
        """Active bookings consume capacity."""
        return self._status in ACTIVE_STATUSES

    @property
    def is_cancelled(self) -> bool:
        return self._status == BookingStatus.CANCELLED

    def overlaps(self, window: TimeWindow) -> bool:
        """Check whether this booking's interval intersects a window."""
        return window.overlaps_range(self._start_time, self._end_time)

    def confirm(self) -> None:
        """Confirm the booking."""
        if self._status != BookingStatus.PENDING:
            raise ValueError("Only pending bookings can be confirmed")
        self._status = BookingStatus.CONFIRMED
        self._updated_at = datetime.utcnow()

    def cancel(self) -> None:
        """Cancel the booking."""
        if self._status in [BookingStatus.COMPLETED, BookingStatus.CANCELLED]:
            raise ValueError("Cannot cancel completed or already cancelled bookings")
        self._status = BookingStatus.CANCELLED
        self._updated_at = datetime.utcnow()

    def complete(self) -> None:
        """Mark booking as completed."""
        if self._status != BookingStatus.CONFIRMED:
            raise ValueError("Only confirmed bookings can be completed")
        self._status = BookingStatus.COMPLETED
        self._updated_at = datetime.utcnow()

    def __eq__(self, other: object) -> bool:
        """Check equality based on booking ID."""
        if not isinstance(other, Booking):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        """Hash based on booking ID."""
        return hash(self._id)

    def __str__(self) -> str:
        """String representation."""
        return f"Booking({self._id}, {self._start_time.isoformat()}, {self._status.value})"
