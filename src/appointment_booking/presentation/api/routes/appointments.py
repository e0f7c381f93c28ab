"""Appointment catalog and availability endpoints."""

from datetime import date as Date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from ....domain.value_objects.actor import Actor
from ....infrastructure.services import ServiceFactory, get_service_factory
from ..middleware.auth import get_current_operator
from ..schemas.appointment_schemas import (
    AppointmentRequest,
    AppointmentResponse,
    SecretLinkRequest,
    SecretLinkResponse,
)
from ..schemas.booking_schemas import AvailabilityResponse

router = APIRouter()


@router.get("/published")
async def list_published_appointments(
    organization_id: Optional[UUID] = Query(None, description="Only list this organization's appointments"),
    factory: ServiceFactory = Depends(get_service_factory)
) -> List[AppointmentResponse]:
    """List published appointment types."""
    appointments = await factory.get_appointment_service().list_published(organization_id)
    return [AppointmentResponse.from_entity(appointment) for appointment in appointments]


@router.get("/details")
async def get_appointment_by_link(
    secret_link: str = Query(..., min_length=1, description="Secret link token"),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AppointmentResponse:
    """Resolve the appointment behind a secret link."""
    appointment = await factory.get_appointment_service().get_appointment_details(secret_link=secret_link)
    return AppointmentResponse.from_entity(appointment)


@router.get("/{appointment_id}/details")
async def get_appointment_details(
    appointment_id: UUID = Path(..., description="Appointment type ID"),
    secret_link: Optional[str] = Query(None, description="Secret link token for unpublished appointments"),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AppointmentResponse:
    """Get a published appointment, or an unpublished one through its secret link."""
    appointment = await factory.get_appointment_service().get_appointment_details(
        appointment_id,
        secret_link=secret_link,
    )
    return AppointmentResponse.from_entity(appointment)


@router.get("/{appointment_id}/slots")
async def get_available_slots(
    appointment_id: UUID = Path(..., description="Appointment type ID"),
    date: Date = Query(..., description="Date in YYYY-MM-DD format"),
    resource_id: Optional[UUID] = Query(None, description="Restrict to one resource"),
    provider_id: Optional[UUID] = Query(None, description="Restrict to one provider"),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AvailabilityResponse:
    """Get the available slots of an appointment on a date."""
    availability = await factory.get_availability_service().get_available_slots(
        appointment_id,
        date,
        resource_id=resource_id,
        provider_id=provider_id,
    )
    return AvailabilityResponse.from_value_object(availability)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    request: AppointmentRequest,
    operator: Actor = Depends(get_current_operator),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AppointmentResponse:
    """Create an unpublished appointment type for the operator's organization."""
    appointment = await factory.get_appointment_service().create_appointment(
        operator.organization_id,
        request.to_draft(),
    )
    return AppointmentResponse.from_entity(appointment)


@router.put("/{appointment_id}")
async def update_appointment(
    request: AppointmentRequest,
    appointment_id: UUID = Path(..., description="Appointment type ID"),
    operator: Actor = Depends(get_current_operator),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AppointmentResponse:
    """Replace an appointment type's configuration."""
    appointment = await factory.get_appointment_service().update_appointment(
        appointment_id,
        operator.organization_id,
        request.to_draft(),
    )
    return AppointmentResponse.from_entity(appointment)


@router.post("/{appointment_id}/publish")
async def publish_appointment(
    appointment_id: UUID = Path(..., description="Appointment type ID"),
    operator: Actor = Depends(get_current_operator),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AppointmentResponse:
    """Publish an appointment type."""
    appointment = await factory.get_appointment_service().publish(appointment_id, operator.organization_id)
    return AppointmentResponse.from_entity(appointment)


@router.post("/{appointment_id}/unpublish")
async def unpublish_appointment(
    appointment_id: UUID = Path(..., description="Appointment type ID"),
    operator: Actor = Depends(get_current_operator),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AppointmentResponse:
    """Unpublish an appointment type."""
    appointment = await factory.get_appointment_service().unpublish(appointment_id, operator.organization_id)
    return AppointmentResponse.from_entity(appointment)


@router.post("/{appointment_id}/secret-link", status_code=status.HTTP_201_CREATED)
async def generate_secret_link(
    request: SecretLinkRequest,
    appointment_id: UUID = Path(..., description="Appointment type ID"),
    operator: Actor = Depends(get_current_operator),
    factory: ServiceFactory = Depends(get_service_factory)
) -> SecretLinkResponse:
    """Issue a new secret link, invalidating the previous one."""
    link = await factory.get_appointment_service().generate_secret_link(
        appointment_id,
        operator.organization_id,
        expiry_time=request.expiry_time,
        expiry_capacity=request.expiry_capacity,
    )
    return SecretLinkResponse.from_value_object(link)
