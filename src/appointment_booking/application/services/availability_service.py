"""Availability query: which slots of an appointment can still be booked on a date."""

import logging
from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from ..ports.repositories import UnitOfWorkFactory
from .capacity_evaluator import CapacityEvaluator, SlotSelector
from .slot_generator import TimeSlotGenerator
from ...domain.entities.appointment import AppointmentType, BookMode
from ...domain.entities.resource import Resource
from ...domain.exceptions import InvalidProviderOrResourceError, NotFoundError
from ...domain.value_objects.time_slot import DayAvailability, TimeSlot
from ...domain.value_objects.weekly_schedule import Weekday
from ...infrastructure.logging import get_logger, log_with_extra

CLOSED_DAY_MESSAGE = "No appointments available on this day."


def validate_selector(
    appointment: AppointmentType,
    resource_id: Optional[UUID],
    provider_id: Optional[UUID]
) -> SlotSelector:
    """Check a requested resource/provider against the appointment's allowed sets."""
    if appointment.book_mode == BookMode.BY_RESOURCE:
        if provider_id is not None:
            raise InvalidProviderOrResourceError(
                "Resource appointments cannot be booked with a provider",
                provider_id=provider_id,
            )
        if resource_id is not None and resource_id not in appointment.allowed_resource_ids:
            raise InvalidProviderOrResourceError(
                "Selected resource is not allowed for this appointment",
                resource_id=resource_id,
            )
    else:
        if resource_id is not None:
            raise InvalidProviderOrResourceError(
                "Provider appointments cannot be booked with a resource",
                resource_id=resource_id,
            )
        if provider_id is not None and provider_id not in appointment.allowed_provider_ids:
            raise InvalidProviderOrResourceError(
                "Selected provider is not allowed for this appointment",
                provider_id=provider_id,
            )
    return SlotSelector(resource_id=resource_id, provider_id=provider_id)


class AvailabilityService:
    """Read-only availability over an appointment's weekly schedule.

    Reads take no locks, so the result may be stale by the time a booking is
    requested; admission re-checks capacity under lock.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        capacity_evaluator: Optional[CapacityEvaluator] = None,
        slot_generator: Optional[TimeSlotGenerator] = None
    ):
        self._uow_factory = uow_factory
        self._capacity_evaluator = capacity_evaluator or CapacityEvaluator()
        self._slot_generator = slot_generator or TimeSlotGenerator()
        self._logger = get_logger(__name__)

    async def get_available_slots(
        self,
        appointment_id: UUID,
        target_date: date,
        resource_id: Optional[UUID] = None,
        provider_id: Optional[UUID] = None
    ) -> DayAvailability:
        """List the bookable slots of an appointment on a date.

        Args:
            appointment_id: Appointment type to query
            target_date: Calendar date in local wall-clock time
            resource_id: Restrict capacity to one allowed resource
            provider_id: Restrict capacity to one allowed provider

        Returns:
            DayAvailability with only the slots that still have capacity

        Raises:
            NotFoundError: If the appointment does not exist
            InvalidProviderOrResourceError: If the selector is not allowed
        """
        day_of_week = Weekday.of(target_date)

        async with self._uow_factory() as uow:
            appointment = await uow.appointments.find_by_id(appointment_id)
            if appointment is None:
                raise NotFoundError("Appointment not found", appointment_id=appointment_id)

            selector = validate_selector(appointment, resource_id, provider_id)

            day_window = appointment.weekly_schedule.resolve_day_window(target_date)
            if day_window is None:
                return DayAvailability(
                    date=target_date,
                    day_of_week=day_of_week,
                    slots=[],
                    message=CLOSED_DAY_MESSAGE,
                )

            resources: Dict[UUID, Resource] = {}
            if appointment.book_mode == BookMode.BY_RESOURCE:
                resources = {
                    resource.id: resource
                    for resource in await uow.resources.find_by_ids(appointment.allowed_resource_ids)
                }
                if selector.resource_id is not None and selector.resource_id not in resources:
                    raise InvalidProviderOrResourceError("Selected resource does not exist", resource_id=resource_id)
                active = await uow.bookings.find_active_overlapping(
                    day_window, resource_ids=appointment.allowed_resource_ids
                )
            else:
                active = await uow.bookings.find_active_overlapping(
                    day_window, provider_ids=appointment.allowed_provider_ids
                )

        policy = appointment.booking_policy
        slots: List[TimeSlot] = []
        for window in self._slot_generator.generate(day_window, appointment.duration_minutes):
            result = self._capacity_evaluator.evaluate(
                policy,
                [window],
                active,
                resources=resources,
                selector=selector,
            )
            if result.available:
                slots.append(TimeSlot.from_window(window, result.remaining))

        log_with_extra(
            self._logger,
            logging.DEBUG,
            f"Resolved {len(slots)} available slots for appointment {appointment_id} on {target_date}",
            appointment_id=str(appointment_id),
            date=target_date.isoformat(),
            slot_count=len(slots),
        )

        return DayAvailability(date=target_date, day_of_week=day_of_week, slots=slots)
