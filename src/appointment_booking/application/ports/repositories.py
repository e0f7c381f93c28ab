"""Port interfaces for repositories and transactional units of work (Dependency Inversion Principle)."""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from appointment_booking.domain.entities.appointment import AppointmentType
    from appointment_booking.domain.entities.booking import Booking
    from appointment_booking.domain.entities.organization import Organization
    from appointment_booking.domain.entities.resource import Resource
    from appointment_booking.domain.value_objects.time_window import TimeWindow


class BookingRepository(ABC):
    """Port interface for booking repository."""

    @abstractmethod
    async def add(self, booking: "Booking") -> "Booking":
        """Insert a new booking."""
        raise NotImplementedError

    @abstractmethod
    async def save(self, booking: "Booking") -> "Booking":
        """Persist changes to an existing booking."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, booking_id: UUID, for_update: bool = False) -> Optional["Booking"]:
        """Find booking by ID, optionally locking it for the rest of the transaction."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_booker(self, user_id: UUID) -> List["Booking"]:
        """Find all bookings made by a user, newest start first."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_appointment_ids(self, appointment_ids: Iterable[UUID]) -> List["Booking"]:
        """Find all bookings of the given appointment types, newest start first."""
        raise NotImplementedError

    @abstractmethod
    async def find_active_overlapping(
        self,
        window: "TimeWindow",
        resource_ids: Iterable[UUID] = (),
        provider_ids: Iterable[UUID] = ()
    ) -> List["Booking"]:
        """Find active bookings intersecting `window` on any of the given resources or providers."""
        raise NotImplementedError

    @abstractmethod
    async def count_active_by_provider(self, provider_ids: Iterable[UUID]) -> Dict[UUID, int]:
        """Count active bookings per provider; providers without bookings map to 0."""
        raise NotImplementedError


class AppointmentRepository(ABC):
    """Port interface for appointment type repository."""

    @abstractmethod
    async def save(self, appointment: "AppointmentType") -> "AppointmentType":
        """Save an appointment type (create or update)."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, appointment_id: UUID, for_update: bool = False) -> Optional["AppointmentType"]:
        """Find appointment type by ID."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_secret_link(self, token: str, for_update: bool = False) -> Optional["AppointmentType"]:
        """Find appointment type by its current secret link token."""
        raise NotImplementedError

    @abstractmethod
    async def find_published(self, organization_id: Optional[UUID] = None) -> List["AppointmentType"]:
        """Find published appointment types, optionally for one organization."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_organization(self, organization_id: UUID) -> List["AppointmentType"]:
        """Find all appointment types of an organization."""
        raise NotImplementedError


class ResourceRepository(ABC):
    """Port interface for resource repository."""

    @abstractmethod
    async def save(self, resource: "Resource") -> "Resource":
        """Save a resource."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, resource_id: UUID) -> Optional["Resource"]:
        """Find resource by ID."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_ids(self, resource_ids: Iterable[UUID]) -> List["Resource"]:
        """Find resources by ID; missing IDs are skipped."""
        raise NotImplementedError


class OrganizationRepository(ABC):
    """Port interface for organization repository."""

    @abstractmethod
    async def save(self, organization: "Organization") -> "Organization":
        """Save an organization."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, organization_id: UUID) -> Optional["Organization"]:
        """Find organization by ID."""
        raise NotImplementedError


class UnitOfWork(ABC):
    """One storage transaction spanning all repositories.

    Used as an async context manager. Work not committed before the block
    exits is rolled back. Lock methods serialize concurrent transactions on
    the given rows until commit or rollback.
    """

    appointments: AppointmentRepository
    bookings: BookingRepository
    resources: ResourceRepository
    organizations: OrganizationRepository

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""
        raise NotImplementedError

    @abstractmethod
    async def rollback(self) -> None:
        """Discard uncommitted work. Safe to call after commit."""
        raise NotImplementedError

    @abstractmethod
    async def lock_resources(self, resource_ids: Iterable[UUID]) -> None:
        """Lock resource rows against concurrent admissions."""
        raise NotImplementedError

    @abstractmethod
    async def lock_providers(self, provider_ids: Iterable[UUID]) -> None:
        """Lock provider rows against concurrent admissions."""
        raise NotImplementedError


UnitOfWorkFactory = Callable[[], UnitOfWork]
