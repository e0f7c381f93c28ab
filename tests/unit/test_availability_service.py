"""Unit tests for the availability query."""

import pytest
from uuid import uuid4

from appointment_booking.application.services.availability_service import (
    CLOSED_DAY_MESSAGE,
    AvailabilityService,
)
from appointment_booking.domain.entities.appointment import AssignmentMode
from appointment_booking.domain.entities.booking import BookingStatus
from appointment_booking.domain.entities.resource import Resource
from appointment_booking.domain.exceptions import InvalidProviderOrResourceError, NotFoundError
from appointment_booking.domain.value_objects.weekly_schedule import Weekday

from builders import (
    MONDAY,
    TUESDAY,
    at,
    make_booking,
    make_organization,
    make_provider_appointment,
    make_resource_appointment,
    seed,
)


@pytest.fixture
def availability_service(uow_factory):
    return AvailabilityService(uow_factory)


class TestResourceAvailability:
    """Test cases for resource appointments."""

    @pytest.mark.asyncio
    async def test_open_day_lists_all_slots(self, availability_service, uow_factory):
        """Monday 09:00-12:00 in 30-minute slots with no bookings."""
        organization = make_organization()
        resource = Resource(organization_id=organization.id, name="Room A", capacity=2)
        appointment = make_resource_appointment(organization.id, [resource.id])
        await seed(uow_factory, organization, resource, appointment)

        day = await availability_service.get_available_slots(appointment.id, MONDAY)

        assert day.day_of_week == Weekday.MONDAY
        assert day.message is None
        assert [slot.time_range for slot in day.slots] == [
            "09:00 - 09:30", "09:30 - 10:00", "10:00 - 10:30",
            "10:30 - 11:00", "11:00 - 11:30", "11:30 - 12:00",
        ]
        assert all(slot.available_count == 2 for slot in day.slots)

    @pytest.mark.asyncio
    async def test_full_slots_are_omitted(self, availability_service, uow_factory):
        organization = make_organization()
        resource = Resource(organization_id=organization.id, name="Room A", capacity=1)
        appointment = make_resource_appointment(organization.id, [resource.id])
        await seed(
            uow_factory, organization, resource, appointment,
            make_booking(appointment.id, at(9), at(10), resource_id=resource.id),
            make_booking(appointment.id, at(11), at(11, 30), resource_id=resource.id, status=BookingStatus.CANCELLED),
        )

        day = await availability_service.get_available_slots(appointment.id, MONDAY, resource_id=resource.id)

        assert [slot.start_time for slot in day.slots] == [at(10), at(10, 30), at(11), at(11, 30)]

    @pytest.mark.asyncio
    async def test_pool_reports_aggregate_capacity(self, availability_service, uow_factory):
        organization = make_organization()
        first = Resource(organization_id=organization.id, name="Court 1", capacity=1)
        second = Resource(organization_id=organization.id, name="Court 2", capacity=2)
        appointment = make_resource_appointment(organization.id, [first.id, second.id])
        await seed(
            uow_factory, organization, first, second, appointment,
            make_booking(appointment.id, at(9), at(9, 30), resource_id=second.id),
        )

        day = await availability_service.get_available_slots(appointment.id, MONDAY)

        assert day.slots[0].available_count == 2
        assert day.slots[1].available_count == 3

    @pytest.mark.asyncio
    async def test_closed_day(self, availability_service, uow_factory):
        organization = make_organization()
        resource = Resource(organization_id=organization.id, name="Room A", capacity=1)
        appointment = make_resource_appointment(organization.id, [resource.id])
        await seed(uow_factory, organization, resource, appointment)

        day = await availability_service.get_available_slots(appointment.id, TUESDAY)

        assert day.slots == []
        assert day.message == CLOSED_DAY_MESSAGE
        assert day.is_closed is True

    @pytest.mark.asyncio
    async def test_unpublished_appointments_are_still_queryable(self, availability_service, uow_factory):
        organization = make_organization()
        resource = Resource(organization_id=organization.id, name="Room A", capacity=1)
        appointment = make_resource_appointment(organization.id, [resource.id], is_published=False)
        await seed(uow_factory, organization, resource, appointment)

        day = await availability_service.get_available_slots(appointment.id, MONDAY)

        assert len(day.slots) == 6

    @pytest.mark.asyncio
    async def test_disallowed_resource(self, availability_service, uow_factory):
        organization = make_organization()
        resource = Resource(organization_id=organization.id, name="Room A", capacity=1)
        appointment = make_resource_appointment(organization.id, [resource.id])
        await seed(uow_factory, organization, resource, appointment)

        with pytest.raises(InvalidProviderOrResourceError):
            await availability_service.get_available_slots(appointment.id, MONDAY, resource_id=uuid4())
        with pytest.raises(InvalidProviderOrResourceError):
            await availability_service.get_available_slots(appointment.id, MONDAY, provider_id=uuid4())

    @pytest.mark.asyncio
    async def test_missing_appointment(self, availability_service):
        with pytest.raises(NotFoundError):
            await availability_service.get_available_slots(uuid4(), MONDAY)


class TestProviderAvailability:
    """Test cases for provider appointments."""

    @pytest.mark.asyncio
    async def test_roster_counts_free_providers(self, availability_service, uow_factory):
        first, second = uuid4(), uuid4()
        organization = make_organization([first, second])
        appointment = make_provider_appointment(organization.id, [first, second], AssignmentMode.AUTOMATIC)
        await seed(
            uow_factory, organization, appointment,
            make_booking(appointment.id, at(9), at(9, 30), provider_id=first),
            make_booking(appointment.id, at(9), at(9, 30), provider_id=second),
            make_booking(appointment.id, at(10), at(10, 30), provider_id=first),
        )

        day = await availability_service.get_available_slots(appointment.id, MONDAY)

        counts = {slot.start_time: slot.available_count for slot in day.slots}
        assert at(9) not in counts
        assert counts[at(9, 30)] == 2
        assert counts[at(10)] == 1

    @pytest.mark.asyncio
    async def test_selected_provider_is_busy_across_appointment_types(self, availability_service, uow_factory):
        provider = uuid4()
        organization = make_organization([provider])
        appointment = make_provider_appointment(organization.id, [provider])
        other = make_provider_appointment(organization.id, [provider])
        await seed(
            uow_factory, organization, appointment, other,
            make_booking(other.id, at(9, 15), at(9, 45), provider_id=provider),
        )

        day = await availability_service.get_available_slots(appointment.id, MONDAY, provider_id=provider)

        assert [slot.start_time for slot in day.slots] == [at(10), at(10, 30), at(11), at(11, 30)]
        assert all(slot.available_count == 1 for slot in day.slots)
