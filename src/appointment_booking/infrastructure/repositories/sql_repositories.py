"""SQLAlchemy repository implementations and unit of work."""

from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from appointment_booking.application.ports.repositories import (
    AppointmentRepository,
    BookingRepository,
    OrganizationRepository,
    ResourceRepository,
    UnitOfWork,
)
from appointment_booking.domain.entities.appointment import AppointmentType
from appointment_booking.domain.entities.booking import ACTIVE_STATUSES, Booking
from appointment_booking.domain.entities.organization import Organization
from appointment_booking.domain.entities.resource import Resource
from appointment_booking.domain.exceptions import (
    BookingEngineError,
    ConcurrencyConflictError,
    StorageUnavailableError,
)
from appointment_booking.domain.value_objects.secret_link import SecretLink
from appointment_booking.domain.value_objects.time_window import TimeWindow
from appointment_booking.domain.value_objects.weekly_schedule import WeeklySchedule
from appointment_booking.infrastructure.database.models import (
    AppointmentTypeModel,
    BookingModel,
    OrganizationModel,
    ProviderModel,
    ResourceModel,
    organization_providers,
)
from appointment_booking.infrastructure.logging import get_logger, log_database_operation

# PostgreSQL SQLSTATEs for lost races; the transaction may succeed if retried
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
RETRYABLE_SQLSTATES = frozenset([SERIALIZATION_FAILURE, DEADLOCK_DETECTED])


def translate_storage_error(error: Exception) -> BookingEngineError:
    """Map a driver/SQLAlchemy failure onto the domain error taxonomy."""
    orig = getattr(error, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in RETRYABLE_SQLSTATES or "deadlock detected" in str(error).lower():
        return ConcurrencyConflictError(
            "The booking could not be completed because of a concurrent update",
            sqlstate=sqlstate,
        )
    return StorageUnavailableError("Storage is unavailable", reason=type(error).__name__)


@contextmanager
def storage_errors() -> Iterator[None]:
    """Re-raise storage failures as domain errors."""
    try:
        yield
    except DBAPIError as e:
        raise translate_storage_error(e) from e
    except (SQLAlchemyError, OSError) as e:
        raise StorageUnavailableError("Storage is unavailable", reason=type(e).__name__) from e


class _SQLAlchemyRepository:
    """Shared session handling for repositories bound to one unit of work."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._logger = get_logger(__name__)

    async def _execute(self, stmt):
        with storage_errors():
            return await self._session.execute(stmt)

    async def _flush(self) -> None:
        with storage_errors():
            await self._session.flush()


class SQLAlchemyBookingRepository(_SQLAlchemyRepository, BookingRepository):
    """SQLAlchemy implementation of booking repository."""

    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking."""
        log_database_operation(self._logger, "INSERT", "bookings", booking_id=str(booking.id))
        self._session.add(BookingModel(
            id=booking.id,
            appointment_id=booking.appointment_id,
            booker_user_id=booking.booker_user_id,
            resource_id=booking.resource_id,
            assigned_provider_id=booking.assigned_provider_id,
            start_time=booking.start_time,
            end_time=booking.end_time,
            number_of_slots=booking.number_of_slots,
            status=booking.status,
            payment_status=booking.payment_status,
            total_amount=booking.total_amount,
            user_responses=booking.user_responses,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        ))
        await self._flush()
        return booking

    async def save(self, booking: Booking) -> Booking:
        """Persist status changes of an existing booking."""
        model = await self._get_model(booking.id)
        if model is None:
            return await self.add(booking)

        log_database_operation(self._logger, "UPDATE", "bookings", booking_id=str(booking.id))
        model.status = booking.status
        model.payment_status = booking.payment_status
        model.total_amount = booking.total_amount
        model.updated_at = booking.updated_at
        await self._flush()
        return booking

    async def find_by_id(self, booking_id: UUID, for_update: bool = False) -> Optional[Booking]:
        """Find booking by ID."""
        model = await self._get_model(booking_id, for_update)
        if model is None:
            return None
        return self._model_to_entity(model)

    async def find_by_booker(self, user_id: UUID) -> List[Booking]:
        """Find all bookings of a user, newest start first."""
        stmt = select(BookingModel).where(
            BookingModel.booker_user_id == user_id
        ).order_by(BookingModel.start_time.desc())

        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def find_by_appointment_ids(self, appointment_ids: Iterable[UUID]) -> List[Booking]:
        """Find all bookings of the given appointment types, newest start first."""
        ids = list(appointment_ids)
        if not ids:
            return []
        stmt = select(BookingModel).where(
            BookingModel.appointment_id.in_(ids)
        ).order_by(BookingModel.start_time.desc())

        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def find_active_overlapping(
        self,
        window: TimeWindow,
        resource_ids: Iterable[UUID] = (),
        provider_ids: Iterable[UUID] = ()
    ) -> List[Booking]:
        """Find active bookings intersecting `window` on the given resources or providers."""
        resource_ids = list(resource_ids)
        provider_ids = list(provider_ids)
        if not resource_ids and not provider_ids:
            return []

        entity_filters = []
        if resource_ids:
            entity_filters.append(BookingModel.resource_id.in_(resource_ids))
        if provider_ids:
            entity_filters.append(BookingModel.assigned_provider_id.in_(provider_ids))

        # Half-open overlap: existing.start < window.end and window.start < existing.end
        stmt = select(BookingModel).where(
            and_(
                BookingModel.status.in_(ACTIVE_STATUSES),
                BookingModel.start_time < window.end,
                BookingModel.end_time > window.start,
                or_(*entity_filters),
            )
        ).order_by(BookingModel.start_time)

        log_database_operation(
            self._logger,
            "SELECT",
            "bookings",
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
        )
        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def count_active_by_provider(self, provider_ids: Iterable[UUID]) -> Dict[UUID, int]:
        """Count active bookings per provider."""
        ids = list(provider_ids)
        counts = {provider_id: 0 for provider_id in ids}
        if not ids:
            return counts

        stmt = select(
            BookingModel.assigned_provider_id,
            func.count(BookingModel.id)
        ).where(
            and_(
                BookingModel.assigned_provider_id.in_(ids),
                BookingModel.status.in_(ACTIVE_STATUSES),
            )
        ).group_by(BookingModel.assigned_provider_id)

        result = await self._execute(stmt)
        for provider_id, count in result.all():
            counts[provider_id] = count
        return counts

    async def _get_model(self, booking_id: UUID, for_update: bool = False) -> Optional[BookingModel]:
        stmt = select(BookingModel).where(BookingModel.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    def _model_to_entity(self, model: BookingModel) -> Booking:
        return Booking(
            booking_id=model.id,
            appointment_id=model.appointment_id,
            booker_user_id=model.booker_user_id,
            start_time=model.start_time,
            end_time=model.end_time,
            number_of_slots=model.number_of_slots,
            resource_id=model.resource_id,
            assigned_provider_id=model.assigned_provider_id,
            status=model.status,
            payment_status=model.payment_status,
            total_amount=Decimal(model.total_amount),
            user_responses=model.user_responses,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class SQLAlchemyAppointmentRepository(_SQLAlchemyRepository, AppointmentRepository):
    """SQLAlchemy implementation of appointment type repository."""

    async def save(self, appointment: AppointmentType) -> AppointmentType:
        """Save an appointment type (create or update)."""
        stmt = select(AppointmentTypeModel).where(AppointmentTypeModel.id == appointment.id)
        result = await self._execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            log_database_operation(self._logger, "INSERT", "appointment_types", appointment_id=str(appointment.id))
            model = AppointmentTypeModel(id=appointment.id, created_at=appointment.created_at)
            self._session.add(model)
        else:
            log_database_operation(self._logger, "UPDATE", "appointment_types", appointment_id=str(appointment.id))

        link = appointment.secret_link
        model.organization_id = appointment.organization_id
        model.title = appointment.title
        model.description = appointment.description
        model.location = appointment.location
        model.duration_minutes = appointment.duration_minutes
        model.book_mode = appointment.book_mode
        model.assignment_mode = appointment.assignment_mode
        model.schedule = appointment.weekly_schedule.to_list()
        model.questions = appointment.questions
        model.intro_message = appointment.intro_message
        model.confirmation_message = appointment.confirmation_message
        model.allowed_provider_ids = [str(provider_id) for provider_id in appointment.allowed_provider_ids]
        model.allowed_resource_ids = [str(resource_id) for resource_id in appointment.allowed_resource_ids]
        model.allow_multiple_slots = appointment.allow_multiple_slots
        model.max_slots_per_booking = appointment.max_slots_per_booking
        model.is_paid = appointment.is_paid
        model.price_per_slot = appointment.price_per_slot
        model.cancellation_lead_hours = appointment.cancellation_lead_hours
        model.is_published = appointment.is_published
        model.secret_link_token = link.token if link else None
        model.secret_link_expiry_time = link.expiry_time if link else None
        model.secret_link_expiry_capacity = link.expiry_capacity if link else None
        model.bookings_count = appointment.bookings_count
        model.updated_at = appointment.updated_at

        await self._flush()
        return appointment

    async def find_by_id(self, appointment_id: UUID, for_update: bool = False) -> Optional[AppointmentType]:
        """Find appointment type by ID."""
        stmt = select(AppointmentTypeModel).where(AppointmentTypeModel.id == appointment_id)
        return await self._find_one(stmt, for_update)

    async def find_by_secret_link(self, token: str, for_update: bool = False) -> Optional[AppointmentType]:
        """Find appointment type by its current secret link token."""
        if not token:
            return None
        stmt = select(AppointmentTypeModel).where(AppointmentTypeModel.secret_link_token == token)
        return await self._find_one(stmt, for_update)

    async def find_published(self, organization_id: Optional[UUID] = None) -> List[AppointmentType]:
        """Find published appointment types."""
        stmt = select(AppointmentTypeModel).where(AppointmentTypeModel.is_published.is_(True))
        if organization_id is not None:
            stmt = stmt.where(AppointmentTypeModel.organization_id == organization_id)
        stmt = stmt.order_by(AppointmentTypeModel.created_at.desc())

        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def find_by_organization(self, organization_id: UUID) -> List[AppointmentType]:
        """Find all appointment types of an organization."""
        stmt = select(AppointmentTypeModel).where(
            AppointmentTypeModel.organization_id == organization_id
        ).order_by(AppointmentTypeModel.created_at.desc())

        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def _find_one(self, stmt, for_update: bool) -> Optional[AppointmentType]:
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return self._model_to_entity(model)

    def _model_to_entity(self, model: AppointmentTypeModel) -> AppointmentType:
        secret_link = None
        if model.secret_link_token:
            secret_link = SecretLink(
                token=model.secret_link_token,
                expiry_time=model.secret_link_expiry_time,
                expiry_capacity=model.secret_link_expiry_capacity,
            )

        return AppointmentType(
            appointment_id=model.id,
            organization_id=model.organization_id,
            title=model.title,
            description=model.description,
            location=model.location,
            duration_minutes=model.duration_minutes,
            book_mode=model.book_mode,
            assignment_mode=model.assignment_mode,
            weekly_schedule=WeeklySchedule.from_list(model.schedule or []),
            questions=model.questions or [],
            intro_message=model.intro_message,
            confirmation_message=model.confirmation_message,
            allowed_provider_ids=[UUID(value) for value in model.allowed_provider_ids or []],
            allowed_resource_ids=[UUID(value) for value in model.allowed_resource_ids or []],
            allow_multiple_slots=model.allow_multiple_slots,
            max_slots_per_booking=model.max_slots_per_booking,
            is_paid=model.is_paid,
            price_per_slot=Decimal(model.price_per_slot) if model.price_per_slot is not None else None,
            cancellation_lead_hours=model.cancellation_lead_hours,
            is_published=model.is_published,
            secret_link=secret_link,
            bookings_count=model.bookings_count,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class SQLAlchemyResourceRepository(_SQLAlchemyRepository, ResourceRepository):
    """SQLAlchemy implementation of resource repository."""

    async def save(self, resource: Resource) -> Resource:
        """Save a resource."""
        stmt = select(ResourceModel).where(ResourceModel.id == resource.id)
        result = await self._execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            log_database_operation(self._logger, "INSERT", "resources", resource_id=str(resource.id))
            self._session.add(ResourceModel(
                id=resource.id,
                organization_id=resource.organization_id,
                name=resource.name,
                capacity=resource.capacity,
                created_at=resource.created_at,
            ))
        else:
            log_database_operation(self._logger, "UPDATE", "resources", resource_id=str(resource.id))
            model.name = resource.name
            model.capacity = resource.capacity

        await self._flush()
        return resource

    async def find_by_id(self, resource_id: UUID) -> Optional[Resource]:
        """Find resource by ID."""
        resources = await self.find_by_ids([resource_id])
        return resources[0] if resources else None

    async def find_by_ids(self, resource_ids: Iterable[UUID]) -> List[Resource]:
        """Find resources by ID."""
        ids = list(resource_ids)
        if not ids:
            return []
        stmt = select(ResourceModel).where(ResourceModel.id.in_(ids))
        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    def _model_to_entity(self, model: ResourceModel) -> Resource:
        return Resource(
            resource_id=model.id,
            organization_id=model.organization_id,
            name=model.name,
            capacity=model.capacity,
            created_at=model.created_at,
        )


class SQLAlchemyOrganizationRepository(_SQLAlchemyRepository, OrganizationRepository):
    """SQLAlchemy implementation of organization repository."""

    async def save(self, organization: Organization) -> Organization:
        """Save an organization and make sure each provider has a lockable row."""
        stmt = select(OrganizationModel).where(OrganizationModel.id == organization.id)
        result = await self._execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            log_database_operation(self._logger, "INSERT", "organizations", organization_id=str(organization.id))
            model = OrganizationModel(id=organization.id, created_at=organization.created_at)
            self._session.add(model)
        model.name = organization.name
        model.business_hours = organization.business_hours.to_list()
        await self._flush()

        existing = await self._execute(
            select(ProviderModel.id).where(ProviderModel.id.in_(list(organization.provider_ids)))
        )
        known = set(existing.scalars().all())
        for provider_id in organization.provider_ids - known:
            self._session.add(ProviderModel(id=provider_id))
        await self._flush()

        members = await self._execute(
            select(organization_providers.c.provider_id).where(
                organization_providers.c.organization_id == organization.id
            )
        )
        current = set(members.scalars().all())
        new_members = organization.provider_ids - current
        if new_members:
            with storage_errors():
                await self._session.execute(
                    organization_providers.insert(),
                    [{"organization_id": organization.id, "provider_id": provider_id} for provider_id in new_members],
                )
        removed = current - organization.provider_ids
        if removed:
            with storage_errors():
                await self._session.execute(
                    organization_providers.delete().where(
                        and_(
                            organization_providers.c.organization_id == organization.id,
                            organization_providers.c.provider_id.in_(list(removed)),
                        )
                    )
                )
        return organization

    async def find_by_id(self, organization_id: UUID) -> Optional[Organization]:
        """Find organization by ID."""
        result = await self._execute(select(OrganizationModel).where(OrganizationModel.id == organization_id))
        model = result.scalar_one_or_none()
        if model is None:
            return None

        members = await self._execute(
            select(organization_providers.c.provider_id).where(
                organization_providers.c.organization_id == organization_id
            )
        )
        return Organization(
            organization_id=model.id,
            name=model.name,
            business_hours=WeeklySchedule.from_list(model.business_hours or []),
            provider_ids=members.scalars().all(),
            created_at=model.created_at,
        )


class SQLAlchemyUnitOfWork(UnitOfWork):
    """One database transaction shared by all repositories.

    Row locks taken with SELECT ... FOR UPDATE are held until commit or
    rollback. Resource and provider rows are always locked in ID order so
    that concurrent admissions cannot deadlock on each other.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None
        self._logger = get_logger(__name__)

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self._session = self._session_factory()
        self.bookings = SQLAlchemyBookingRepository(self._session)
        self.appointments = SQLAlchemyAppointmentRepository(self._session)
        self.resources = SQLAlchemyResourceRepository(self._session)
        self.organizations = SQLAlchemyOrganizationRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.rollback()
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        """Commit the transaction."""
        with storage_errors():
            await self._session.commit()

    async def rollback(self) -> None:
        """Roll back; a no-op when nothing is pending."""
        if self._session is None:
            return
        with storage_errors():
            await self._session.rollback()

    async def lock_resources(self, resource_ids: Iterable[UUID]) -> None:
        """Lock resource rows in ID order."""
        ids = sorted(set(resource_ids))
        if not ids:
            return
        stmt = select(ResourceModel.id).where(ResourceModel.id.in_(ids)).order_by(ResourceModel.id).with_for_update()
        log_database_operation(self._logger, "LOCK", "resources", count=len(ids))
        with storage_errors():
            await self._session.execute(stmt)

    async def lock_providers(self, provider_ids: Iterable[UUID]) -> None:
        """Lock provider rows in ID order."""
        ids = sorted(set(provider_ids))
        if not ids:
            return
        stmt = select(ProviderModel.id).where(ProviderModel.id.in_(ids)).order_by(ProviderModel.id).with_for_update()
        log_database_operation(self._logger, "LOCK", "providers", count=len(ids))
        with storage_errors():
            await self._session.execute(stmt)
