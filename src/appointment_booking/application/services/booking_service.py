"""Booking service: admission, cancellation and booking listings."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from ..ports.events import DomainEvent, DomainEventType, EventPublisher
from ..ports.repositories import UnitOfWork, UnitOfWorkFactory
from .availability_service import validate_selector
from .capacity_evaluator import CapacityEvaluator, CapacityResult
from ...domain.entities.appointment import AppointmentType, AssignmentMode, BookMode
from ...domain.entities.booking import Booking, BookingStatus
from ...domain.exceptions import (
    CapacityExceededError,
    ConcurrencyConflictError,
    InvalidProviderOrResourceError,
    NoProviderAvailableError,
    NotBookableError,
    NotFoundError,
    PermissionDeniedError,
    PolicyViolationError,
)
from ...domain.value_objects.actor import Actor, ActorRole
from ...domain.value_objects.cancellation_policy import CancellationOutcome
from ...domain.value_objects.time_window import TimeWindow, to_wall_clock
from ...infrastructure.logging import (
    get_logger,
    log_admission_decision,
    log_business_rule_violation,
    log_with_extra,
)


@dataclass(frozen=True)
class BookingRequest:
    """Inbound booking request.

    The appointment is addressed either by ID or by a secret link token. A
    token given together with an ID is checked against that appointment.
    """

    booker_user_id: UUID
    start_time: datetime
    appointment_id: Optional[UUID] = None
    secret_link: Optional[str] = None
    number_of_slots: Optional[int] = None
    resource_id: Optional[UUID] = None
    assigned_provider_id: Optional[UUID] = None
    user_responses: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        """Validate request."""
        if self.appointment_id is None and not self.secret_link:
            raise ValueError("Either an appointment ID or a secret link is required")


@dataclass(frozen=True)
class CancellationResult:
    """Outcome of a cancellation request with the booking in its final state."""
    outcome: CancellationOutcome
    booking: Booking


class BookingService:
    """Application service for booking admission and cancellation.

    Every admission runs in one unit of work: the appointment row is locked,
    then the contended resource or provider rows, and capacity is evaluated
    against bookings read under those locks. Lost races surface from storage
    as ConcurrencyConflictError and the whole unit of work is retried.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        event_publisher: EventPublisher,
        capacity_evaluator: Optional[CapacityEvaluator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        zone: tzinfo = timezone.utc,
        max_attempts: int = 3,
        retry_backoff: float = 0.05
    ):
        if max_attempts < 1:
            raise ValueError("Admission attempts must be at least 1")
        self._uow_factory = uow_factory
        self._event_publisher = event_publisher
        self._capacity_evaluator = capacity_evaluator or CapacityEvaluator()
        self._zone = zone
        self._clock = clock or (lambda: datetime.now(zone).replace(tzinfo=None))
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff
        self._logger = get_logger(__name__)

    async def admit_booking(self, request: BookingRequest) -> Booking:
        """Validate and persist a booking request.

        Args:
            request: Booking request

        Returns:
            The confirmed booking

        Raises:
            NotFoundError: If the appointment does not exist
            NotBookableError, LinkExpiredError, LinkCapacityReachedError: If the appointment is not reachable
                or the requested time is outside its schedule
            InvalidSlotCountError: If the slot count violates the appointment configuration or overruns the schedule
            InvalidProviderOrResourceError: If the resource/provider is missing or not allowed
            CapacityExceededError: If a sub-slot has no remaining capacity
            NoProviderAvailableError: If automatic assignment finds no free provider
            ConcurrencyConflictError: If retries are exhausted
            StorageUnavailableError: On persistence failure
        """
        attempt = 1
        while True:
            try:
                booking, appointment = await self._admit_once(request)
                break
            except ConcurrencyConflictError:
                if attempt >= self._max_attempts:
                    self._logger.error(
                        f"Admission for appointment {request.appointment_id} gave up after {attempt} attempts"
                    )
                    raise
                log_with_extra(
                    self._logger,
                    logging.WARNING,
                    f"Concurrency conflict on admission attempt {attempt}, retrying",
                    attempt=attempt,
                    appointment_id=str(request.appointment_id),
                )
                await asyncio.sleep(self._retry_backoff * attempt)
                attempt += 1

        log_admission_decision(
            self._logger,
            True,
            str(appointment.id),
            booking_id=str(booking.id),
            start_time=booking.start_time.isoformat(),
            number_of_slots=booking.number_of_slots,
            resource_id=str(booking.resource_id) if booking.resource_id else None,
            assigned_provider_id=str(booking.assigned_provider_id) if booking.assigned_provider_id else None,
            attempts=attempt,
        )

        self._emit(DomainEvent(
            type=DomainEventType.BOOKING_CREATED,
            appointment_id=appointment.id,
            booking_id=booking.id,
            requires_payment=appointment.is_paid,
        ))
        return booking

    async def _admit_once(self, request: BookingRequest):
        start_time = to_wall_clock(request.start_time, self._zone)

        async with self._uow_factory() as uow:
            appointment = await self._load_appointment(uow, request)
            appointment.ensure_reachable(request.secret_link, self._clock())

            number_of_slots = appointment.resolve_slot_count(request.number_of_slots)
            selector = self._resolve_selector(appointment, request)

            windows = appointment.sub_slots(start_time, number_of_slots)
            span = TimeWindow(start=windows[0].start, end=windows[-1].end)

            resources = {}
            provider_loads = None
            if appointment.book_mode == BookMode.BY_RESOURCE:
                await uow.lock_resources([selector.resource_id])
                resources = {
                    resource.id: resource
                    for resource in await uow.resources.find_by_ids([selector.resource_id])
                }
                if selector.resource_id not in resources:
                    raise InvalidProviderOrResourceError(
                        "Selected resource does not exist",
                        resource_id=selector.resource_id,
                    )
                active = await uow.bookings.find_active_overlapping(span, resource_ids=[selector.resource_id])
            else:
                candidates = (
                    [selector.provider_id] if selector.provider_id is not None
                    else list(appointment.allowed_provider_ids)
                )
                await uow.lock_providers(candidates)
                active = await uow.bookings.find_active_overlapping(span, provider_ids=candidates)
                if selector.provider_id is None:
                    provider_loads = await uow.bookings.count_active_by_provider(candidates)

            result = self._capacity_evaluator.evaluate(
                appointment.booking_policy,
                windows,
                active,
                resources=resources,
                selector=selector,
                provider_loads=provider_loads,
                assign=True,
            )
            if not result.available:
                self._reject(appointment, windows, result, selector.provider_id is None)

            booking = Booking(
                appointment_id=appointment.id,
                booker_user_id=request.booker_user_id,
                start_time=span.start,
                end_time=span.end,
                number_of_slots=number_of_slots,
                resource_id=result.chosen_resource_id,
                assigned_provider_id=result.chosen_provider_id,
                status=BookingStatus.CONFIRMED,
                payment_status=appointment.initial_payment_status(),
                total_amount=appointment.price_for(number_of_slots),
                user_responses=request.user_responses,
            )
            await uow.bookings.add(booking)
            appointment.record_booking()
            await uow.appointments.save(appointment)
            await uow.commit()

        return booking, appointment

    async def _load_appointment(self, uow: UnitOfWork, request: BookingRequest) -> AppointmentType:
        if request.appointment_id is None:
            appointment = await uow.appointments.find_by_secret_link(request.secret_link, for_update=True)
            if appointment is None:
                raise NotBookableError("This appointment is not available for booking")
            return appointment

        appointment = await uow.appointments.find_by_id(request.appointment_id, for_update=True)
        if appointment is None:
            raise NotFoundError("Appointment not found", appointment_id=request.appointment_id)
        return appointment

    def _resolve_selector(self, appointment: AppointmentType, request: BookingRequest):
        if appointment.book_mode == BookMode.BY_RESOURCE and request.resource_id is None:
            raise InvalidProviderOrResourceError("A resource must be selected for this appointment")
        if (
            appointment.book_mode == BookMode.BY_USER
            and appointment.assignment_mode == AssignmentMode.BY_VISITOR
            and request.assigned_provider_id is None
        ):
            raise InvalidProviderOrResourceError("A provider must be selected for this appointment")
        return validate_selector(appointment, request.resource_id, request.assigned_provider_id)

    def _reject(
        self,
        appointment: AppointmentType,
        windows: List[TimeWindow],
        result: CapacityResult,
        auto_assigned: bool
    ) -> None:
        index = result.failed_slot_index or 0
        window = windows[index]
        log_admission_decision(
            self._logger,
            False,
            str(appointment.id),
            failed_slot_index=index,
            failed_slot=window.format_time_range(),
        )
        if appointment.book_mode == BookMode.BY_USER and auto_assigned:
            raise NoProviderAvailableError(
                f"No provider is available for the slot {window.format_time_range()}",
                slot_index=index,
                slot_start=window.start.isoformat(),
            )
        raise CapacityExceededError(
            f"Time slot {window.format_time_range()} is fully booked",
            slot_index=index,
            capacity=result.capacity,
            slot_start=window.start.isoformat(),
        )

    async def cancel_booking(self, booking_id: UUID, actor: Actor) -> CancellationResult:
        """Cancel a booking on behalf of its owner or an organization operator.

        Raises:
            NotFoundError: If the booking does not exist
            PermissionDeniedError: If the actor is neither the owner nor an operator of the organization
            PolicyViolationError: If the cancellation policy rejects the request
        """
        async with self._uow_factory() as uow:
            booking = await uow.bookings.find_by_id(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found", booking_id=booking_id)

            # Same lock order as admission: appointment row first
            appointment = await uow.appointments.find_by_id(booking.appointment_id, for_update=True)
            booking = await uow.bookings.find_by_id(booking_id, for_update=True)
            if appointment is None or booking is None:
                raise NotFoundError("Booking not found", booking_id=booking_id)

            is_operator = actor.operates(appointment.organization_id)
            if booking.booker_user_id != actor.user_id and not is_operator:
                raise PermissionDeniedError(
                    "You can only cancel your own bookings",
                    booking_id=booking_id,
                )

            if booking.is_cancelled:
                self._logger.info(f"Booking {booking_id} is already cancelled")
                return CancellationResult(outcome=CancellationOutcome.ALREADY_CANCELLED, booking=booking)

            if booking.status == BookingStatus.COMPLETED:
                raise PolicyViolationError("Completed bookings cannot be cancelled", booking_id=booking_id)

            role = ActorRole.ORGANIZATION_OPERATOR if is_operator else ActorRole.USER
            decision = appointment.cancellation_policy.evaluate(booking.start_time, self._clock(), role)
            if not decision.allowed:
                log_business_rule_violation(
                    self._logger,
                    "cancellation_lead_time",
                    decision.reason,
                    booking_id=str(booking_id),
                    hours_until_start=round(decision.hours_until_start, 2),
                )
                raise PolicyViolationError(
                    decision.reason,
                    booking_id=booking_id,
                    lead_hours=appointment.cancellation_lead_hours,
                )

            booking.cancel()
            appointment.release_booking()
            await uow.bookings.save(booking)
            await uow.appointments.save(appointment)
            await uow.commit()

        log_with_extra(
            self._logger,
            logging.INFO,
            f"Booking {booking_id} cancelled",
            booking_id=str(booking_id),
            appointment_id=str(appointment.id),
            cancelled_by=str(actor.user_id),
            by_operator=is_operator,
        )
        self._emit(DomainEvent(
            type=DomainEventType.BOOKING_CANCELLED,
            appointment_id=appointment.id,
            booking_id=booking.id,
        ))
        return CancellationResult(outcome=CancellationOutcome.CANCELLED, booking=booking)

    async def get_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        """Get a booking visible to its owner or an operator of the organization."""
        async with self._uow_factory() as uow:
            booking = await uow.bookings.find_by_id(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found", booking_id=booking_id)
            if booking.booker_user_id == actor.user_id:
                return booking
            appointment = await uow.appointments.find_by_id(booking.appointment_id)
            if appointment is not None and actor.operates(appointment.organization_id):
                return booking
        raise PermissionDeniedError("You can only view your own bookings", booking_id=booking_id)

    async def get_user_bookings(self, user_id: UUID) -> List[Booking]:
        """Get all bookings made by a user, newest start first."""
        async with self._uow_factory() as uow:
            return await uow.bookings.find_by_booker(user_id)

    async def get_organization_bookings(self, organization_id: UUID, actor: Actor) -> List[Booking]:
        """Get all bookings of an organization's appointments, newest start first."""
        if not actor.operates(organization_id):
            raise PermissionDeniedError(
                "Only operators of this organization can list its bookings",
                organization_id=organization_id,
            )
        async with self._uow_factory() as uow:
            appointments = await uow.appointments.find_by_organization(organization_id)
            return await uow.bookings.find_by_appointment_ids([appointment.id for appointment in appointments])

    def _emit(self, event: DomainEvent) -> None:
        try:
            self._event_publisher.publish(event)
        except Exception:
            # Delivery problems never undo a committed booking
            self._logger.exception(f"Failed to publish {event.type.value} for booking {event.booking_id}")
