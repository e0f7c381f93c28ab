"""Unit tests for SQL storage error translation and row mapping."""

import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4
from sqlalchemy.exc import InterfaceError, OperationalError, ResourceClosedError

from appointment_booking.domain.entities.appointment import AssignmentMode, BookMode
from appointment_booking.domain.entities.booking import BookingStatus, PaymentStatus
from appointment_booking.domain.exceptions import ConcurrencyConflictError, StorageUnavailableError
from appointment_booking.infrastructure.database.models import AppointmentTypeModel, BookingModel
from appointment_booking.infrastructure.repositories.sql_repositories import (
    SQLAlchemyAppointmentRepository,
    SQLAlchemyBookingRepository,
    storage_errors,
    translate_storage_error,
)


class DriverError(Exception):
    """Driver exception carrying a PostgreSQL SQLSTATE."""

    def __init__(self, message, pgcode=None, sqlstate=None):
        super().__init__(message)
        self.pgcode = pgcode
        self.sqlstate = sqlstate


def db_error(message, **codes):
    return OperationalError("UPDATE appointment_types SET bookings_count = 1", {}, DriverError(message, **codes))


class TestTranslateStorageError:
    """Test cases for mapping driver failures onto domain errors."""

    def test_serialization_failure_is_a_conflict(self):
        error = translate_storage_error(db_error("could not serialize access", pgcode="40001"))

        assert isinstance(error, ConcurrencyConflictError)
        assert error.context["sqlstate"] == "40001"

    def test_deadlock_sqlstate_is_a_conflict(self):
        error = translate_storage_error(db_error("deadlock", sqlstate="40P01"))

        assert isinstance(error, ConcurrencyConflictError)

    def test_deadlock_message_is_a_conflict(self):
        assert isinstance(translate_storage_error(db_error("ERROR: deadlock detected")), ConcurrencyConflictError)

    def test_other_failures_are_unavailable(self):
        error = translate_storage_error(db_error("connection refused", pgcode="08006"))

        assert isinstance(error, StorageUnavailableError)
        assert error.code == "storage_unavailable"


class TestStorageErrors:
    """Test cases for the storage_errors context manager."""

    def test_dbapi_errors_are_translated(self):
        with pytest.raises(ConcurrencyConflictError):
            with storage_errors():
                raise db_error("could not serialize access", pgcode="40001")

    def test_interface_errors_are_unavailable(self):
        with pytest.raises(StorageUnavailableError):
            with storage_errors():
                raise InterfaceError("SELECT 1", {}, DriverError("connection is closed"))

    def test_sqlalchemy_errors_are_unavailable(self):
        with pytest.raises(StorageUnavailableError):
            with storage_errors():
                raise ResourceClosedError("This result object is closed.")

    def test_os_errors_are_unavailable(self):
        with pytest.raises(StorageUnavailableError) as exc_info:
            with storage_errors():
                raise ConnectionRefusedError("connection refused")

        assert exc_info.value.context["reason"] == "ConnectionRefusedError"

    def test_domain_errors_pass_through(self):
        with pytest.raises(ValueError):
            with storage_errors():
                raise ValueError("not a storage problem")


class TestRowMapping:
    """Test cases for mapping rows onto entities."""

    def test_appointment_intake_fields(self):
        questions = [{"id": "q1", "question": "Reason for visit?", "type": "text", "required": True}]
        model = AppointmentTypeModel(
            id=uuid4(),
            organization_id=uuid4(),
            title="Consultation",
            duration_minutes=30,
            book_mode=BookMode.BY_RESOURCE,
            assignment_mode=AssignmentMode.BY_VISITOR,
            schedule=[{"day": "MONDAY", "from": "09:00", "to": "12:00"}],
            questions=questions,
            intro_message="Please arrive early",
            confirmation_message="See you soon",
            allowed_provider_ids=[],
            allowed_resource_ids=[str(uuid4())],
            allow_multiple_slots=False,
            is_paid=False,
            cancellation_lead_hours=0,
            is_published=True,
            bookings_count=0,
        )

        appointment = SQLAlchemyAppointmentRepository(MagicMock())._model_to_entity(model)

        assert appointment.questions == questions
        assert appointment.intro_message == "Please arrive early"
        assert appointment.confirmation_message == "See you soon"

    def test_booking_user_responses(self):
        model = BookingModel(
            id=uuid4(),
            appointment_id=uuid4(),
            booker_user_id=uuid4(),
            resource_id=uuid4(),
            start_time=datetime(2025, 10, 6, 9, 0),
            end_time=datetime(2025, 10, 6, 9, 30),
            number_of_slots=1,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            total_amount=Decimal("0"),
            user_responses={"q1": "Checkup"},
        )

        booking = SQLAlchemyBookingRepository(MagicMock())._model_to_entity(model)

        assert booking.user_responses == {"q1": "Checkup"}
