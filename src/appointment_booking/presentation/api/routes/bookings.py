"""Booking admission, cancellation and listing endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status

from ....domain.value_objects.actor import Actor
from ....infrastructure.services import ServiceFactory, get_service_factory
from ..middleware.auth import get_current_actor, get_current_operator
from ..schemas.booking_schemas import BookingCreateRequest, BookingResponse, CancellationResponse

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    actor: Actor = Depends(get_current_actor),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Book one or more contiguous slots of an appointment."""
    booking = await factory.get_booking_service().admit_booking(request.to_request(actor.user_id))
    return BookingResponse.from_entity(booking)


@router.get("/my")
async def get_my_bookings(
    actor: Actor = Depends(get_current_actor),
    factory: ServiceFactory = Depends(get_service_factory)
) -> List[BookingResponse]:
    """Get the caller's bookings, newest first."""
    bookings = await factory.get_booking_service().get_user_bookings(actor.user_id)
    return [BookingResponse.from_entity(booking) for booking in bookings]


@router.get("/organization")
async def get_organization_bookings(
    operator: Actor = Depends(get_current_operator),
    factory: ServiceFactory = Depends(get_service_factory)
) -> List[BookingResponse]:
    """Get every booking of the operator's organization, newest first."""
    bookings = await factory.get_booking_service().get_organization_bookings(operator.organization_id, operator)
    return [BookingResponse.from_entity(booking) for booking in bookings]


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID = Path(..., description="Booking ID"),
    actor: Actor = Depends(get_current_actor),
    factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Get a booking by ID."""
    booking = await factory.get_booking_service().get_booking(booking_id, actor)
    return BookingResponse.from_entity(booking)


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: UUID = Path(..., description="Booking ID"),
    actor: Actor = Depends(get_current_actor),
    factory: ServiceFactory = Depends(get_service_factory)
) -> CancellationResponse:
    """Cancel a booking; cancelling twice reports already_cancelled."""
    result = await factory.get_booking_service().cancel_booking(booking_id, actor)
    return CancellationResponse.from_result(result)
