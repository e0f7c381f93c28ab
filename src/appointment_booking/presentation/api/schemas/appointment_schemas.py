"""Pydantic schemas for the appointment catalog."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ....application.services.appointment_service import AppointmentDraft
from ....domain.entities.appointment import AppointmentType, AssignmentMode, BookMode
from ....domain.entities.organization import Organization
from ....domain.entities.resource import Resource
from ....domain.value_objects.secret_link import SecretLink


class ScheduleSlotSchema(BaseModel):
    """One weekly schedule entry in its persisted shape."""
    day: str = Field(..., description="Weekday name, e.g. MONDAY")
    from_: str = Field(..., alias="from", description="Opening time, zero-padded HH:MM")
    to: str = Field(..., description="Closing time, zero-padded HH:MM")

    model_config = {"populate_by_name": True}

    def to_dict(self) -> dict:
        return {"day": self.day, "from": self.from_, "to": self.to}


class AppointmentRequest(BaseModel):
    """Request model for creating or replacing an appointment type."""
    title: str
    duration_minutes: int
    book_mode: BookMode
    schedule: List[ScheduleSlotSchema]
    assignment_mode: AssignmentMode = AssignmentMode.BY_VISITOR
    allowed_provider_ids: List[UUID] = Field(default_factory=list)
    allowed_resource_ids: List[UUID] = Field(default_factory=list)
    allow_multiple_slots: bool = False
    max_slots_per_booking: Optional[int] = None
    is_paid: bool = False
    price_per_slot: Optional[Decimal] = None
    cancellation_lead_hours: int = 0
    description: Optional[str] = None
    location: Optional[str] = None
    questions: List[Dict[str, Any]] = Field(default_factory=list, description="Intake questions shown to bookers")
    intro_message: Optional[str] = None
    confirmation_message: Optional[str] = None

    def to_draft(self) -> AppointmentDraft:
        return AppointmentDraft(
            title=self.title,
            duration_minutes=self.duration_minutes,
            book_mode=self.book_mode,
            weekly_schedule=[slot.to_dict() for slot in self.schedule],
            assignment_mode=self.assignment_mode,
            allowed_provider_ids=list(self.allowed_provider_ids),
            allowed_resource_ids=list(self.allowed_resource_ids),
            allow_multiple_slots=self.allow_multiple_slots,
            max_slots_per_booking=self.max_slots_per_booking,
            is_paid=self.is_paid,
            price_per_slot=self.price_per_slot,
            cancellation_lead_hours=self.cancellation_lead_hours,
            description=self.description,
            location=self.location,
            questions=list(self.questions),
            intro_message=self.intro_message,
            confirmation_message=self.confirmation_message,
        )


class AppointmentResponse(BaseModel):
    """Public view of an appointment type; the secret link is never exposed."""
    id: UUID
    organization_id: UUID
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    duration_minutes: int
    book_mode: str
    assignment_mode: str
    schedule: List[dict]
    allowed_provider_ids: List[UUID]
    allowed_resource_ids: List[UUID]
    allow_multiple_slots: bool
    max_slots_per_booking: Optional[int] = None
    is_paid: bool
    price_per_slot: Optional[Decimal] = None
    cancellation_lead_hours: int
    questions: List[Dict[str, Any]]
    intro_message: Optional[str] = None
    confirmation_message: Optional[str] = None
    is_published: bool
    bookings_count: int

    @classmethod
    def from_entity(cls, appointment: AppointmentType) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            organization_id=appointment.organization_id,
            title=appointment.title,
            description=appointment.description,
            location=appointment.location,
            duration_minutes=appointment.duration_minutes,
            book_mode=appointment.book_mode.value,
            assignment_mode=appointment.assignment_mode.value,
            schedule=appointment.weekly_schedule.to_list(),
            allowed_provider_ids=list(appointment.allowed_provider_ids),
            allowed_resource_ids=list(appointment.allowed_resource_ids),
            allow_multiple_slots=appointment.allow_multiple_slots,
            max_slots_per_booking=appointment.max_slots_per_booking,
            is_paid=appointment.is_paid,
            price_per_slot=appointment.price_per_slot,
            cancellation_lead_hours=appointment.cancellation_lead_hours,
            questions=appointment.questions,
            intro_message=appointment.intro_message,
            confirmation_message=appointment.confirmation_message,
            is_published=appointment.is_published,
            bookings_count=appointment.bookings_count,
        )


class SecretLinkRequest(BaseModel):
    """Request model for issuing a secret link."""
    expiry_time: Optional[datetime] = Field(None, description="Link stops working after this local time")
    expiry_capacity: Optional[int] = Field(None, description="Link stops working after this many active bookings")


class SecretLinkResponse(BaseModel):
    """Issued secret link."""
    token: str
    expiry_time: Optional[datetime] = None
    expiry_capacity: Optional[int] = None

    @classmethod
    def from_value_object(cls, link: SecretLink) -> "SecretLinkResponse":
        return cls(token=link.token, expiry_time=link.expiry_time, expiry_capacity=link.expiry_capacity)


class OrganizationRequest(BaseModel):
    """Request model for registering an organization."""
    name: str
    business_hours: List[ScheduleSlotSchema]
    provider_ids: List[UUID] = Field(default_factory=list, description="Member users who serve appointments")


class OrganizationResponse(BaseModel):
    """Registered organization."""
    id: UUID
    name: str
    business_hours: List[dict]
    provider_ids: List[UUID]

    @classmethod
    def from_entity(cls, organization: Organization) -> "OrganizationResponse":
        return cls(
            id=organization.id,
            name=organization.name,
            business_hours=organization.business_hours.to_list(),
            provider_ids=sorted(organization.provider_ids, key=str),
        )


class ResourceRequest(BaseModel):
    """Request model for creating a resource."""
    name: str
    capacity: int = Field(1, description="Bookings a single slot can hold")


class ResourceResponse(BaseModel):
    """Bookable resource."""
    id: UUID
    organization_id: UUID
    name: str
    capacity: int

    @classmethod
    def from_entity(cls, resource: Resource) -> "ResourceResponse":
        return cls(
            id=resource.id,
            organization_id=resource.organization_id,
            name=resource.name,
            capacity=resource.capacity,
        )
