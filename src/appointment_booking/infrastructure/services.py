"""Dependency injection and service factory."""

from typing import Optional

from appointment_booking.application.ports.events import EventPublisher
from appointment_booking.application.ports.repositories import UnitOfWorkFactory
from appointment_booking.application.services.appointment_service import AppointmentService
from appointment_booking.application.services.availability_service import AvailabilityService
from appointment_booking.application.services.booking_service import BookingService
from appointment_booking.application.services.capacity_evaluator import CapacityEvaluator
from appointment_booking.infrastructure.database.connection import DatabaseManager
from appointment_booking.infrastructure.logging import get_logger
from appointment_booking.infrastructure.notifications import LoggingEventPublisher
from appointment_booking.infrastructure.repositories.memory_repositories import InMemoryUnitOfWorkFactory
from appointment_booking.infrastructure.repositories.sql_repositories import SQLAlchemyUnitOfWork
from appointment_booking.presentation.api.config import Settings, get_settings


class ServiceFactory:
    """Factory for creating application services with proper dependencies.

    With the "memory" backend every service shares one in-process store;
    with "sql" each unit of work opens its own database session.
    """

    def __init__(
        self,
        settings: Settings,
        event_publisher: Optional[EventPublisher] = None,
        uow_factory: Optional[UnitOfWorkFactory] = None
    ):
        self._settings = settings
        self._event_publisher = event_publisher or LoggingEventPublisher()
        self._capacity_evaluator = CapacityEvaluator()
        self._logger = get_logger(__name__)
        self._connected = False

        self.database_manager: Optional[DatabaseManager] = None
        if uow_factory is not None:
            self._uow_factory = uow_factory
        elif settings.storage_backend == "memory":
            self._uow_factory = InMemoryUnitOfWorkFactory()
        else:
            self.database_manager = DatabaseManager(
                settings.database_url,
                echo=settings.db_echo,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_pre_ping=settings.db_pool_pre_ping,
            )
            self._uow_factory = self._sql_unit_of_work

    def _sql_unit_of_work(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(self.database_manager.session_factory)

    @property
    def uow_factory(self) -> UnitOfWorkFactory:
        return self._uow_factory

    async def initialize(self):
        """Initialize the service factory."""
        if self._connected or self.database_manager is None:
            return
        await self.database_manager.connect()
        if self._settings.create_tables_on_startup:
            await self.database_manager.create_tables()
        self._connected = True
        self._logger.info("Connected to database")

    async def shutdown(self):
        """Shutdown the service factory."""
        if self._connected:
            await self.database_manager.disconnect()
            self._connected = False

    async def check_storage(self) -> bool:
        """Report whether the storage backend is reachable."""
        if self.database_manager is None:
            return True
        return await self.database_manager.ping()

    def get_booking_service(self) -> BookingService:
        """Get booking service."""
        return BookingService(
            uow_factory=self._uow_factory,
            event_publisher=self._event_publisher,
            capacity_evaluator=self._capacity_evaluator,
            max_attempts=self._settings.admission_max_attempts,
            retry_backoff=self._settings.admission_retry_backoff,
            zone=self._settings.zone,
        )

    def get_availability_service(self) -> AvailabilityService:
        """Get availability service."""
        return AvailabilityService(
            uow_factory=self._uow_factory,
            capacity_evaluator=self._capacity_evaluator,
        )

    def get_appointment_service(self) -> AppointmentService:
        """Get appointment catalog service."""
        return AppointmentService(uow_factory=self._uow_factory, zone=self._settings.zone)


# Global service factory instance
_service_factory: Optional[ServiceFactory] = None


def get_service_factory() -> ServiceFactory:
    """Get the global service factory instance."""
    global _service_factory

    if _service_factory is None:
        _service_factory = ServiceFactory(get_settings())

    return _service_factory


async def initialize_services():
    """Initialize application services."""
    factory = get_service_factory()
    await factory.initialize()


async def shutdown_services():
    """Shutdown application services."""
    factory = get_service_factory()
    await factory.shutdown()
