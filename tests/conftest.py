"""Shared fixtures for the appointment booking tests."""

import pytest

from appointment_booking.application.services.booking_service import BookingService
from appointment_booking.infrastructure.notifications import RecordingEventPublisher
from appointment_booking.infrastructure.repositories.memory_repositories import (
    InMemoryDataStore,
    InMemoryUnitOfWorkFactory,
)
from builders import NOW


@pytest.fixture
def store():
    return InMemoryDataStore()


@pytest.fixture
def uow_factory(store):
    return InMemoryUnitOfWorkFactory(store)


@pytest.fixture
def publisher():
    return RecordingEventPublisher()


@pytest.fixture
def booking_service(uow_factory, publisher):
    return BookingService(
        uow_factory=uow_factory,
        event_publisher=publisher,
        clock=lambda: NOW,
        retry_backoff=0,
    )
