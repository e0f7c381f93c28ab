"""In-memory repository implementations for testing and development."""

import asyncio
from copy import deepcopy
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from appointment_booking.application.ports.repositories import (
    AppointmentRepository,
    BookingRepository,
    OrganizationRepository,
    ResourceRepository,
    UnitOfWork,
)
from appointment_booking.domain.entities.appointment import AppointmentType
from appointment_booking.domain.entities.booking import Booking
from appointment_booking.domain.entities.organization import Organization
from appointment_booking.domain.entities.resource import Resource
from appointment_booking.domain.value_objects.time_window import TimeWindow

APPOINTMENT = "appointment"
BOOKING = "booking"
RESOURCE = "resource"
PROVIDER = "provider"


class InMemoryDataStore:
    """Committed state shared by every unit of work of one process."""

    def __init__(self):
        self.organizations: Dict[UUID, Organization] = {}
        self.resources: Dict[UUID, Resource] = {}
        self.appointments: Dict[UUID, AppointmentType] = {}
        self.bookings: Dict[UUID, Booking] = {}
        self._locks: Dict[Tuple[str, UUID], asyncio.Lock] = {}

    def lock_for(self, kind: str, key: UUID) -> asyncio.Lock:
        """Get the row lock for a key, creating it on first use."""
        return self._locks.setdefault((kind, key), asyncio.Lock())


class _Table:
    """Read-your-writes view over one committed table plus staged changes."""

    def __init__(self, committed: Dict[UUID, object]):
        self._committed = committed
        self.staged: Dict[UUID, object] = {}

    def get(self, key: UUID):
        if key in self.staged:
            return deepcopy(self.staged[key])
        if key in self._committed:
            return deepcopy(self._committed[key])
        return None

    def values(self) -> List[object]:
        merged = dict(self._committed)
        merged.update(self.staged)
        return [deepcopy(value) for value in merged.values()]

    def put(self, key: UUID, value: object) -> None:
        self.staged[key] = deepcopy(value)

    def apply(self) -> None:
        self._committed.update(self.staged)
        self.staged.clear()


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of booking repository."""

    def __init__(self, uow: "InMemoryUnitOfWork", table: _Table):
        self._uow = uow
        self._table = table

    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking."""
        if self._table.get(booking.id) is not None:
            raise ValueError(f"Booking already exists: {booking.id}")
        self._table.put(booking.id, booking)
        return booking

    async def save(self, booking: Booking) -> Booking:
        """Save a booking."""
        self._table.put(booking.id, booking)
        return booking

    async def find_by_id(self, booking_id: UUID, for_update: bool = False) -> Optional[Booking]:
        """Find booking by ID."""
        if for_update:
            await self._uow.acquire(BOOKING, [booking_id])
        await asyncio.sleep(0)
        return self._table.get(booking_id)

    async def find_by_booker(self, user_id: UUID) -> List[Booking]:
        """Find all bookings of a user, newest start first."""
        await asyncio.sleep(0)
        bookings = [booking for booking in self._table.values() if booking.booker_user_id == user_id]
        return sorted(bookings, key=lambda booking: booking.start_time, reverse=True)

    async def find_by_appointment_ids(self, appointment_ids: Iterable[UUID]) -> List[Booking]:
        """Find all bookings of the given appointment types, newest start first."""
        ids = set(appointment_ids)
        await asyncio.sleep(0)
        bookings = [booking for booking in self._table.values() if booking.appointment_id in ids]
        return sorted(bookings, key=lambda booking: booking.start_time, reverse=True)

    async def find_active_overlapping(
        self,
        window: TimeWindow,
        resource_ids: Iterable[UUID] = (),
        provider_ids: Iterable[UUID] = ()
    ) -> List[Booking]:
        """Find active bookings intersecting `window` on the given resources or providers."""
        resource_ids = set(resource_ids)
        provider_ids = set(provider_ids)
        await asyncio.sleep(0)
        matches = [
            booking for booking in self._table.values()
            if booking.is_active
            and booking.overlaps(window)
            and (booking.resource_id in resource_ids or booking.assigned_provider_id in provider_ids)
        ]
        return sorted(matches, key=lambda booking: booking.start_time)

    async def count_active_by_provider(self, provider_ids: Iterable[UUID]) -> Dict[UUID, int]:
        """Count active bookings per provider."""
        counts = {provider_id: 0 for provider_id in provider_ids}
        await asyncio.sleep(0)
        for booking in self._table.values():
            if booking.is_active and booking.assigned_provider_id in counts:
                counts[booking.assigned_provider_id] += 1
        return counts


class InMemoryAppointmentRepository(AppointmentRepository):
    """In-memory implementation of appointment type repository."""

    def __init__(self, uow: "InMemoryUnitOfWork", table: _Table):
        self._uow = uow
        self._table = table

    async def save(self, appointment: AppointmentType) -> AppointmentType:
        """Save an appointment type."""
        self._table.put(appointment.id, appointment)
        return appointment

    async def find_by_id(self, appointment_id: UUID, for_update: bool = False) -> Optional[AppointmentType]:
        """Find appointment type by ID."""
        if for_update:
            await self._uow.acquire(APPOINTMENT, [appointment_id])
        await asyncio.sleep(0)
        return self._table.get(appointment_id)

    async def find_by_secret_link(self, token: str, for_update: bool = False) -> Optional[AppointmentType]:
        """Find appointment type by its current secret link token."""
        appointment = self._match_token(token)
        if appointment is None or not for_update:
            return appointment
        await self._uow.acquire(APPOINTMENT, [appointment.id])
        # The link may have been replaced while waiting for the lock
        return self._match_token(token)

    async def find_published(self, organization_id: Optional[UUID] = None) -> List[AppointmentType]:
        """Find published appointment types."""
        await asyncio.sleep(0)
        appointments = [
            appointment for appointment in self._table.values()
            if appointment.is_published
            and (organization_id is None or appointment.organization_id == organization_id)
        ]
        return sorted(appointments, key=lambda appointment: appointment.created_at, reverse=True)

    async def find_by_organization(self, organization_id: UUID) -> List[AppointmentType]:
        """Find all appointment types of an organization."""
        await asyncio.sleep(0)
        appointments = [
            appointment for appointment in self._table.values()
            if appointment.organization_id == organization_id
        ]
        return sorted(appointments, key=lambda appointment: appointment.created_at, reverse=True)

    def _match_token(self, token: str) -> Optional[AppointmentType]:
        if not token:
            return None
        for appointment in self._table.values():
            if appointment.secret_link is not None and appointment.secret_link.matches(token):
                return appointment
        return None


class InMemoryResourceRepository(ResourceRepository):
    """In-memory implementation of resource repository."""

    def __init__(self, table: _Table):
        self._table = table

    async def save(self, resource: Resource) -> Resource:
        """Save a resource."""
        self._table.put(resource.id, resource)
        return resource

    async def find_by_id(self, resource_id: UUID) -> Optional[Resource]:
        """Find resource by ID."""
        return self._table.get(resource_id)

    async def find_by_ids(self, resource_ids: Iterable[UUID]) -> List[Resource]:
        """Find resources by ID; missing IDs are skipped."""
        resources = [self._table.get(resource_id) for resource_id in resource_ids]
        return [resource for resource in resources if resource is not None]


class InMemoryOrganizationRepository(OrganizationRepository):
    """In-memory implementation of organization repository."""

    def __init__(self, table: _Table):
        self._table = table

    async def save(self, organization: Organization) -> Organization:
        """Save an organization."""
        self._table.put(organization.id, organization)
        return organization

    async def find_by_id(self, organization_id: UUID) -> Optional[Organization]:
        """Find organization by ID."""
        return self._table.get(organization_id)


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of work over an InMemoryDataStore.

    Writes are staged and applied on commit. Row locks are per-key
    asyncio.Locks held until the unit of work ends; resource and provider
    keys are acquired in sorted order, mirroring the SQL implementation.
    """

    def __init__(self, store: InMemoryDataStore):
        self._store = store
        self._held: List[asyncio.Lock] = []
        self._held_keys = set()
        self._tables = {
            APPOINTMENT: _Table(store.appointments),
            BOOKING: _Table(store.bookings),
            RESOURCE: _Table(store.resources),
            "organization": _Table(store.organizations),
        }
        self.appointments = InMemoryAppointmentRepository(self, self._tables[APPOINTMENT])
        self.bookings = InMemoryBookingRepository(self, self._tables[BOOKING])
        self.resources = InMemoryResourceRepository(self._tables[RESOURCE])
        self.organizations = InMemoryOrganizationRepository(self._tables["organization"])

    async def acquire(self, kind: str, keys: Iterable[UUID]) -> None:
        """Acquire row locks in sorted key order; re-entrant per unit of work."""
        for key in sorted(set(keys)):
            if (kind, key) in self._held_keys:
                continue
            lock = self._store.lock_for(kind, key)
            await lock.acquire()
            self._held.append(lock)
            self._held_keys.add((kind, key))

    async def commit(self) -> None:
        """Apply staged writes to the shared store."""
        for table in self._tables.values():
            table.apply()

    async def rollback(self) -> None:
        """Discard staged writes and release every held lock."""
        for table in self._tables.values():
            table.staged.clear()
        while self._held:
            self._held.pop().release()
        self._held_keys.clear()

    async def lock_resources(self, resource_ids: Iterable[UUID]) -> None:
        """Lock resources in ID order."""
        await self.acquire(RESOURCE, resource_ids)

    async def lock_providers(self, provider_ids: Iterable[UUID]) -> None:
        """Lock providers in ID order."""
        await self.acquire(PROVIDER, provider_ids)


class InMemoryUnitOfWorkFactory:
    """Callable producing units of work over one shared store."""

    def __init__(self, store: Optional[InMemoryDataStore] = None):
        self.store = store or InMemoryDataStore()

    def __call__(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self.store)
