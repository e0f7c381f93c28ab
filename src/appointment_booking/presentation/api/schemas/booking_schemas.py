"""Pydantic schemas for booking and availability requests and responses."""

from datetime import date as Date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ....application.services.booking_service import BookingRequest, CancellationResult
from ....domain.entities.booking import Booking
from ....domain.value_objects.time_slot import DayAvailability, TimeSlot


class BookingCreateRequest(BaseModel):
    """Request model for creating a booking."""
    appointment_id: Optional[UUID] = Field(None, description="Appointment type to book")
    secret_link: Optional[str] = Field(None, description="Secret link token for unpublished appointments")
    start_time: datetime = Field(..., description="Start of the first slot, local wall-clock time")
    number_of_slots: Optional[int] = Field(None, ge=1, description="Contiguous slots to reserve (defaults to 1)")
    resource_id: Optional[UUID] = Field(None, description="Resource to book (resource appointments)")
    assigned_provider_id: Optional[UUID] = Field(None, description="Provider to book (provider appointments)")
    user_responses: Optional[Dict[str, Any]] = Field(None, description="Answers to the intake questions, keyed by question ID")

    @model_validator(mode='after')
    def require_target(self):
        """Require an appointment ID or a secret link."""
        if self.appointment_id is None and not self.secret_link:
            raise ValueError('Either appointment_id or secret_link is required')
        return self

    def to_request(self, booker_user_id: UUID) -> BookingRequest:
        return BookingRequest(
            booker_user_id=booker_user_id,
            start_time=self.start_time,
            appointment_id=self.appointment_id,
            secret_link=self.secret_link,
            number_of_slots=self.number_of_slots,
            resource_id=self.resource_id,
            assigned_provider_id=self.assigned_provider_id,
            user_responses=self.user_responses,
        )


class BookingResponse(BaseModel):
    """Response model for booking operations."""
    id: UUID
    appointment_id: UUID
    booker_user_id: UUID
    resource_id: Optional[UUID] = None
    assigned_provider_id: Optional[UUID] = None
    start_time: datetime
    end_time: datetime
    number_of_slots: int
    status: str
    payment_status: str
    total_amount: Decimal
    user_responses: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            appointment_id=booking.appointment_id,
            booker_user_id=booking.booker_user_id,
            resource_id=booking.resource_id,
            assigned_provider_id=booking.assigned_provider_id,
            start_time=booking.start_time,
            end_time=booking.end_time,
            number_of_slots=booking.number_of_slots,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
            total_amount=booking.total_amount,
            user_responses=booking.user_responses,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class CancellationResponse(BaseModel):
    """Response model for cancellation requests."""
    outcome: str
    booking: BookingResponse

    @classmethod
    def from_result(cls, result: CancellationResult) -> "CancellationResponse":
        return cls(outcome=result.outcome.value, booking=BookingResponse.from_entity(result.booking))


class TimeSlotResponse(BaseModel):
    """Response model for one available slot."""
    start_time: datetime
    end_time: datetime
    available_count: int
    time_range: str = Field(..., description="Formatted time range")

    @classmethod
    def from_value_object(cls, slot: TimeSlot) -> "TimeSlotResponse":
        return cls(
            start_time=slot.start_time,
            end_time=slot.end_time,
            available_count=slot.available_count,
            time_range=slot.time_range,
        )


class AvailabilityResponse(BaseModel):
    """Available slots of an appointment on one date."""
    date: Date
    day_of_week: str
    slots: List[TimeSlotResponse]
    total_available: int
    message: Optional[str] = None

    @classmethod
    def from_value_object(cls, availability: DayAvailability) -> "AvailabilityResponse":
        return cls(
            date=availability.date,
            day_of_week=availability.day_of_week.value,
            slots=[TimeSlotResponse.from_value_object(slot) for slot in availability.slots],
            total_available=len(availability.slots),
            message=availability.message,
        )
