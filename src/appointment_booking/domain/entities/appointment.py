"""Appointment type entity: a bookable offering with schedule, capacity and pricing."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID, uuid4

from ..exceptions import (
    InvalidSlotCountError,
    LinkCapacityReachedError,
    LinkExpiredError,
    NotBookableError,
)
from ..value_objects.booking_policy import (
    AutoAssignedProvider,
    BookingPolicy,
    ResourcePool,
    VisitorChosenProvider,
)
from ..value_objects.cancellation_policy import CancellationPolicy
from ..value_objects.secret_link import SecretLink
from ..value_objects.time_window import TimeWindow
from ..value_objects.weekly_schedule import WeeklySchedule
from .booking import PaymentStatus


class BookMode(Enum):
    """What a booking reserves."""
    BY_USER = "by_user"
    BY_RESOURCE = "by_resource"


class AssignmentMode(Enum):
    """Who picks the provider for BY_USER appointments."""
    AUTOMATIC = "automatic"
    BY_VISITOR = "by_visitor"


class AppointmentType:
    """Appointment type entity owned by one organization."""

    def __init__(
        self,
        organization_id: UUID,
        title: str,
        duration_minutes: int,
        book_mode: BookMode,
        weekly_schedule: WeeklySchedule,
        assignment_mode: AssignmentMode = AssignmentMode.BY_VISITOR,
        allowed_provider_ids: Iterable[UUID] = (),
        allowed_resource_ids: Iterable[UUID] = (),
        allow_multiple_slots: bool = False,
        max_slots_per_booking: Optional[int] = None,
        is_paid: bool = False,
        price_per_slot: Optional[Decimal] = None,
        cancellation_lead_hours: int = 0,
        description: Optional[str] = None,
        location: Optional[str] = None,
        questions: Iterable[Dict[str, Any]] = (),
        intro_message: Optional[str] = None,
        confirmation_message: Optional[str] = None,
        is_published: bool = False,
        secret_link: Optional[SecretLink] = None,
        bookings_count: int = 0,
        appointment_id: Optional[UUID] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        # Order preserved: automatic assignment breaks load ties by list order
        provider_ids = tuple(dict.fromkeys(allowed_provider_ids))
        resource_ids = tuple(dict.fromkeys(allowed_resource_ids))
        questions = [dict(question) for question in questions]

        if not title or not title.strip():
            raise ValueError("Title cannot be empty")
        if duration_minutes <= 0:
            raise ValueError("Duration minutes must be greater than 0")
        if weekly_schedule.is_empty():
            raise ValueError("Schedule must be a non-empty list")
        if book_mode == BookMode.BY_USER and (not provider_ids or resource_ids):
            raise ValueError("BY_USER appointments require allowed providers and no resources")
        if book_mode == BookMode.BY_RESOURCE and (not resource_ids or provider_ids):
            raise ValueError("BY_RESOURCE appointments require allowed resources and no providers")
        if max_slots_per_booking is not None and max_slots_per_booking < 1:
            raise ValueError("Maximum slots per booking must be at least 1")
        if is_paid and (price_per_slot is None or price_per_slot <= 0):
            raise ValueError("Paid appointments require a price greater than 0")
        if cancellation_lead_hours < 0:
            raise ValueError("Cancellation lead hours cannot be negative")
        if bookings_count < 0:
            raise ValueError("Bookings count cannot be negative")
        if any(not question.get("question") for question in questions):
            raise ValueError("Every intake question needs question text")

        self._id = appointment_id or uuid4()
        self._organization_id = organization_id
        self._title = title.strip()
        self._description = description
        self._location = location
        self._questions: List[Dict[str, Any]] = questions
        self._intro_message = intro_message
        self._confirmation_message = confirmation_message
        self._duration_minutes = duration_minutes
        self._book_mode = book_mode
        self._assignment_mode = assignment_mode
        self._weekly_schedule = weekly_schedule
        self._allowed_provider_ids: Tuple[UUID, ...] = provider_ids
        self._allowed_resource_ids: Tuple[UUID, ...] = resource_ids
        self._allow_multiple_slots = allow_multiple_slots
        self._max_slots_per_booking = max_slots_per_booking
        self._is_paid = is_paid
        self._price_per_slot = price_per_slot if is_paid else None
        self._cancellation_lead_hours = cancellation_lead_hours
        self._is_published = is_published
        self._secret_link = secret_link
        self._bookings_count = bookings_count
        self._created_at = created_at or datetime.utcnow()
        self._updated_at = updated_at or datetime.utcnow()

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def organization_id(self) -> UUID:
        return self._organization_id

    @property
    def title(self) -> str:
        return self._title

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def location(self) -> Optional[str]:
        return self._location

    @property
    def questions(self) -> List[Dict[str, Any]]:
        """Intake questions shown to the booker, in display order."""
        return [dict(question) for question in self._questions]

    @property
    def intro_message(self) -> Optional[str]:
        return self._intro_message

    @property
    def confirmation_message(self) -> Optional[str]:
        return self._confirmation_message

    @property
    def duration_minutes(self) -> int:
        return self._duration_minutes

    @property
    def book_mode(self) -> BookMode:
        return self._book_mode

    @property
    def assignment_mode(self) -> AssignmentMode:
        return self._assignment_mode

    @property
    def weekly_schedule(self) -> WeeklySchedule:
        return self._weekly_schedule

    @property
    def allowed_provider_ids(self) -> Tuple[UUID, ...]:
        return self._allowed_provider_ids

    @property
    def allowed_resource_ids(self) -> Tuple[UUID, ...]:
        return self._allowed_resource_ids

    @property
    def allow_multiple_slots(self) -> bool:
        return self._allow_multiple_slots

    @property
    def max_slots_per_booking(self) -> Optional[int]:
        return self._max_slots_per_booking

    @property
    def is_paid(self) -> bool:
        return self._is_paid

    @property
    def price_per_slot(self) -> Optional[Decimal]:
        return self._price_per_slot

    @property
    def cancellation_lead_hours(self) -> int:
        return self._cancellation_lead_hours

    @property
    def is_published(self) -> bool:
        return self._is_published

    @property
    def secret_link(self) -> Optional[SecretLink]:
        return self._secret_link

    @property
    def bookings_count(self) -> int:
        """Active bookings admitted against this appointment."""
        return self._bookings_count

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def booking_policy(self) -> BookingPolicy:
        """Capacity shape of this appointment."""
        if self._book_mode == BookMode.BY_RESOURCE:
            return ResourcePool(resource_ids=self._allowed_resource_ids)
        if self._assignment_mode == AssignmentMode.AUTOMATIC:
            return AutoAssignedProvider(provider_ids=self._allowed_provider_ids)
        return VisitorChosenProvider(provider_ids=self._allowed_provider_ids)

    @property
    def cancellation_policy(self) -> CancellationPolicy:
        return CancellationPolicy(is_paid=self._is_paid, lead_hours=self._cancellation_lead_hours)

    def ensure_reachable(self, secret_link: Optional[str], now: datetime) -> None:
        """Raise unless the appointment is published or accessed through a valid secret link."""
        if self._is_published:
            return
        if self._secret_link is None or not self._secret_link.matches(secret_link):
            raise NotBookableError(
                "This appointment is not available for booking",
                appointment_id=self._id,
            )
        if self._secret_link.is_expired(now):
            raise LinkExpiredError(
                "This appointment link has expired",
                appointment_id=self._id,
                expiry_time=self._secret_link.expiry_time,
            )
        if self._secret_link.is_exhausted(self._bookings_count):
            raise LinkCapacityReachedError(
                "This appointment has reached its booking capacity",
                appointment_id=self._id,
                expiry_capacity=self._secret_link.expiry_capacity,
            )

    def resolve_slot_count(self, requested: Optional[int]) -> int:
        """Validate the requested number of contiguous slots, defaulting to 1."""
        count = 1 if requested is None else requested
        if count < 1:
            raise InvalidSlotCountError("Number of slots must be at least 1", requested=count)
        if not self._allow_multiple_slots and count > 1:
            raise InvalidSlotCountError(
                "Multiple slots per booking not allowed for this appointment",
                requested=count,
            )
        if self._max_slots_per_booking is not None and count > self._max_slots_per_booking:
            raise InvalidSlotCountError(
                f"Maximum {self._max_slots_per_booking} continuous slots allowed per booking",
                requested=count,
                maximum=self._max_slots_per_booking,
            )
        return count

    def sub_slots(self, start_time: datetime, number_of_slots: int) -> List[TimeWindow]:
        """Lay out the booked sub-slots, which must fit inside the schedule window of their day.

        Raises:
            NotBookableError: If the day is closed or the first slot falls outside its window
            InvalidSlotCountError: If the requested slots run past the end of the window
        """
        day_window = self._weekly_schedule.resolve_day_window(start_time.date())
        if day_window is None:
            raise NotBookableError(
                "This appointment is not available on the requested day",
                appointment_id=self._id,
                date=start_time.date().isoformat(),
            )

        duration = timedelta(minutes=self._duration_minutes)
        fitting = (day_window.end - start_time) // duration if day_window.start <= start_time else 0
        if fitting < 1:
            raise NotBookableError(
                f"Requested time is outside the appointment schedule ({day_window.format_time_range()})",
                appointment_id=self._id,
                start_time=start_time.isoformat(),
            )
        if number_of_slots > fitting:
            raise InvalidSlotCountError(
                f"Only {fitting} continuous slots fit before the schedule closes at {day_window.end.strftime('%H:%M')}",
                requested=number_of_slots,
                maximum=fitting,
            )
        return TimeWindow.contiguous(start_time, self._duration_minutes, number_of_slots)

    def price_for(self, number_of_slots: int) -> Decimal:
        """Total amount due for a booking of `number_of_slots`."""
        if not self._is_paid:
            return Decimal("0")
        return self._price_per_slot * number_of_slots

    def initial_payment_status(self) -> PaymentStatus:
        """Free appointments are settled on admission."""
        return PaymentStatus.PENDING if self._is_paid else PaymentStatus.PAID

    def record_booking(self) -> None:
        """Count an admitted booking."""
        self._bookings_count += 1
        self._updated_at = datetime.utcnow()

    def release_booking(self) -> None:
        """Uncount a cancelled booking."""
        if self._bookings_count == 0:
            raise ValueError("Bookings count cannot go below zero")
        self._bookings_count -= 1
        self._updated_at = datetime.utcnow()

    def publish(self) -> None:
        self._is_published = True
        self._updated_at = datetime.utcnow()

    def unpublish(self) -> None:
        self._is_published = False
        self._updated_at = datetime.utcnow()

    def issue_secret_link(self, link: SecretLink) -> None:
        """Replace the secret link; previously issued tokens stop working."""
        self._secret_link = link
        self._updated_at = datetime.utcnow()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AppointmentType):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __str__(self) -> str:
        return f"AppointmentType({self._id}, {self._title}, {self._book_mode.value})"
