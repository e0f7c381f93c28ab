"""Unit tests for the in-memory unit of work."""

import asyncio
import pytest
from uuid import uuid4

from appointment_booking.domain.entities.booking import BookingStatus
from appointment_booking.domain.entities.resource import Resource
from appointment_booking.domain.value_objects.secret_link import SecretLink
from appointment_booking.domain.value_objects.time_window import TimeWindow

from builders import TUESDAY, at, make_booking, make_organization, make_resource_appointment, seed


class TestInMemoryUnitOfWork:
    """Test cases for staging, commit and rollback."""

    @pytest.mark.asyncio
    async def test_uncommitted_writes_are_discarded(self, uow_factory, store):
        resource = Resource(organization_id=uuid4(), name="Room A", capacity=1)

        async with uow_factory() as uow:
            await uow.resources.save(resource)
            assert (await uow.resources.find_by_id(resource.id)).name == "Room A"

        assert store.resources == {}

    @pytest.mark.asyncio
    async def test_commit_applies_writes(self, uow_factory, store):
        resource = Resource(organization_id=uuid4(), name="Room A", capacity=1)

        async with uow_factory() as uow:
            await uow.resources.save(resource)
            await uow.commit()

        assert store.resources[resource.id].name == "Room A"

    @pytest.mark.asyncio
    async def test_reads_return_copies(self, uow_factory, store):
        booking = make_booking(uuid4(), at(9), at(10), resource_id=uuid4())
        await seed(uow_factory, booking)

        async with uow_factory() as uow:
            loaded = await uow.bookings.find_by_id(booking.id)
            loaded.cancel()

        assert store.bookings[booking.id].status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_duplicate_booking_insert_rejected(self, uow_factory):
        booking = make_booking(uuid4(), at(9), at(10), resource_id=uuid4())
        await seed(uow_factory, booking)

        async with uow_factory() as uow:
            with pytest.raises(ValueError):
                await uow.bookings.add(booking)

    @pytest.mark.asyncio
    async def test_row_locks_serialize_units_of_work(self, uow_factory):
        """A second unit of work waits for the first to release the appointment lock."""
        appointment_id = uuid4()
        order = []

        async def worker(name, hold):
            async with uow_factory() as uow:
                await uow.appointments.find_by_id(appointment_id, for_update=True)
                order.append(f"{name}-start")
                await asyncio.sleep(hold)
                order.append(f"{name}-end")

        await asyncio.gather(worker("first", 0.01), worker("second", 0))

        assert order == ["first-start", "first-end", "second-start", "second-end"]

    @pytest.mark.asyncio
    async def test_locks_are_released_after_errors(self, uow_factory):
        resource_id = uuid4()

        with pytest.raises(RuntimeError):
            async with uow_factory() as uow:
                await uow.lock_resources([resource_id])
                raise RuntimeError("boom")

        async with uow_factory() as uow:
            await asyncio.wait_for(uow.lock_resources([resource_id]), timeout=1)


class TestInMemoryQueries:
    """Test cases for repository queries."""

    @pytest.mark.asyncio
    async def test_find_active_overlapping(self, uow_factory):
        resource_id, provider_id = uuid4(), uuid4()
        appointment_id = uuid4()
        overlapping = make_booking(appointment_id, at(9), at(10), resource_id=resource_id)
        touching = make_booking(appointment_id, at(10), at(11), resource_id=resource_id)
        cancelled = make_booking(appointment_id, at(9), at(10), resource_id=resource_id, status=BookingStatus.CANCELLED)
        on_provider = make_booking(appointment_id, at(9, 30), at(10), provider_id=provider_id)
        elsewhere = make_booking(appointment_id, at(9), at(10), resource_id=uuid4())
        await seed(uow_factory, overlapping, touching, cancelled, on_provider, elsewhere)

        async with uow_factory() as uow:
            by_resource = await uow.bookings.find_active_overlapping(
                TimeWindow(start=at(9, 30), end=at(10)), resource_ids=[resource_id]
            )
            by_provider = await uow.bookings.find_active_overlapping(
                TimeWindow(start=at(9), end=at(12)), provider_ids=[provider_id]
            )

        assert [booking.id for booking in by_resource] == [overlapping.id]
        assert [booking.id for booking in by_provider] == [on_provider.id]

    @pytest.mark.asyncio
    async def test_count_active_by_provider(self, uow_factory):
        busy, idle = uuid4(), uuid4()
        appointment_id = uuid4()
        await seed(
            uow_factory,
            make_booking(appointment_id, at(9), at(10), provider_id=busy),
            make_booking(appointment_id, at(9, day=TUESDAY), at(10, day=TUESDAY), provider_id=busy),
            make_booking(appointment_id, at(11), at(12), provider_id=busy, status=BookingStatus.CANCELLED),
        )

        async with uow_factory() as uow:
            counts = await uow.bookings.count_active_by_provider([busy, idle])

        assert counts == {busy: 2, idle: 0}

    @pytest.mark.asyncio
    async def test_find_by_secret_link(self, uow_factory):
        organization = make_organization()
        appointment = make_resource_appointment(
            organization.id, [uuid4()], is_published=False, secret_link=SecretLink(token="private-token")
        )
        await seed(uow_factory, organization, appointment)

        async with uow_factory() as uow:
            found = await uow.appointments.find_by_secret_link("private-token", for_update=True)
            missing = await uow.appointments.find_by_secret_link("other-token")

        assert found.id == appointment.id
        assert missing is None
