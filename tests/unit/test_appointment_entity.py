"""Unit tests for the AppointmentType entity."""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from appointment_booking.domain.entities.appointment import AppointmentType, AssignmentMode, BookMode
from appointment_booking.domain.entities.booking import PaymentStatus
from appointment_booking.domain.exceptions import (
    InvalidSlotCountError,
    LinkCapacityReachedError,
    LinkExpiredError,
    NotBookableError,
)
from appointment_booking.domain.value_objects.booking_policy import (
    AutoAssignedProvider,
    ResourcePool,
    VisitorChosenProvider,
)
from appointment_booking.domain.value_objects.secret_link import SecretLink
from appointment_booking.domain.value_objects.weekly_schedule import WeeklySchedule

from builders import TUESDAY, NOW, at, make_provider_appointment, make_resource_appointment, monday_schedule


class TestAppointmentTypeValidation:
    """Test cases for AppointmentType invariants."""

    def test_requires_positive_duration(self):
        with pytest.raises(ValueError, match="Duration minutes must be greater than 0"):
            make_resource_appointment(uuid4(), [uuid4()], duration_minutes=0)

    def test_requires_non_empty_schedule(self):
        with pytest.raises(ValueError, match="Schedule must be a non-empty list"):
            make_resource_appointment(uuid4(), [uuid4()], weekly_schedule=WeeklySchedule.from_list([]))

    def test_resource_mode_rejects_providers(self):
        with pytest.raises(ValueError, match="BY_RESOURCE"):
            make_resource_appointment(uuid4(), [uuid4()], allowed_provider_ids=[uuid4()])

    def test_user_mode_requires_providers(self):
        with pytest.raises(ValueError, match="BY_USER"):
            make_provider_appointment(uuid4(), [])

    def test_paid_requires_price(self):
        with pytest.raises(ValueError, match="price greater than 0"):
            make_resource_appointment(uuid4(), [uuid4()], is_paid=True, price_per_slot=Decimal("0"))

    def test_free_appointment_drops_price(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()], price_per_slot=Decimal("10"))

        assert appointment.price_per_slot is None
        assert appointment.price_for(3) == Decimal("0")

    def test_allowed_ids_keep_order_without_duplicates(self):
        first, second = uuid4(), uuid4()

        appointment = make_provider_appointment(uuid4(), [second, first, second])

        assert appointment.allowed_provider_ids == (second, first)

    def test_questions_need_text(self):
        with pytest.raises(ValueError, match="Every intake question needs question text"):
            make_resource_appointment(uuid4(), [uuid4()], questions=[{"id": "q1", "type": "text"}])

    def test_questions_are_copied(self):
        questions = [{"id": "q1", "question": "Reason for visit?", "type": "text", "required": True}]
        appointment = make_resource_appointment(uuid4(), [uuid4()], questions=questions)

        appointment.questions[0]["question"] = "changed"

        assert appointment.questions == questions

    def test_booking_policy_variants(self):
        organization_id = uuid4()

        assert isinstance(make_resource_appointment(organization_id, [uuid4()]).booking_policy, ResourcePool)
        assert isinstance(make_provider_appointment(organization_id, [uuid4()]).booking_policy, VisitorChosenProvider)
        assert isinstance(
            make_provider_appointment(organization_id, [uuid4()], AssignmentMode.AUTOMATIC).booking_policy,
            AutoAssignedProvider,
        )


class TestReachability:
    """Test cases for publication and secret-link access."""

    def unpublished(self, link=None, bookings_count=0):
        return make_resource_appointment(
            uuid4(), [uuid4()], is_published=False, secret_link=link, bookings_count=bookings_count
        )

    def test_published_is_reachable_without_link(self):
        make_resource_appointment(uuid4(), [uuid4()]).ensure_reachable(None, NOW)

    def test_unpublished_without_link_is_not_bookable(self):
        with pytest.raises(NotBookableError):
            self.unpublished().ensure_reachable(None, NOW)

    def test_wrong_token_is_not_bookable(self):
        appointment = self.unpublished(SecretLink(token="abc123"))

        with pytest.raises(NotBookableError):
            appointment.ensure_reachable("other", NOW)

    def test_valid_link_is_reachable(self):
        appointment = self.unpublished(SecretLink(token="abc123", expiry_time=datetime(2025, 10, 2), expiry_capacity=5))

        appointment.ensure_reachable("abc123", NOW)

    def test_expired_link(self):
        appointment = self.unpublished(SecretLink(token="abc123", expiry_time=datetime(2025, 9, 30)))

        with pytest.raises(LinkExpiredError) as exc_info:
            appointment.ensure_reachable("abc123", NOW)

        assert exc_info.value.code == "link_expired"

    def test_exhausted_link(self):
        appointment = self.unpublished(SecretLink(token="abc123", expiry_capacity=2), bookings_count=2)

        with pytest.raises(LinkCapacityReachedError):
            appointment.ensure_reachable("abc123", NOW)

    def test_reissued_link_invalidates_old_token(self):
        appointment = self.unpublished(SecretLink(token="old-token"))
        appointment.issue_secret_link(SecretLink(token="new-token"))

        with pytest.raises(NotBookableError):
            appointment.ensure_reachable("old-token", NOW)
        appointment.ensure_reachable("new-token", NOW)


class TestSlotCount:
    """Test cases for multi-slot configuration."""

    def test_defaults_to_one(self):
        assert make_resource_appointment(uuid4(), [uuid4()]).resolve_slot_count(None) == 1

    def test_multiple_slots_disallowed(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()])

        with pytest.raises(InvalidSlotCountError, match="Multiple slots per booking not allowed"):
            appointment.resolve_slot_count(2)

    def test_maximum_is_enforced(self):
        appointment = make_resource_appointment(
            uuid4(), [uuid4()], allow_multiple_slots=True, max_slots_per_booking=3
        )

        assert appointment.resolve_slot_count(3) == 3
        with pytest.raises(InvalidSlotCountError, match="Maximum 3 continuous slots allowed per booking"):
            appointment.resolve_slot_count(4)

    def test_zero_slots_rejected(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()], allow_multiple_slots=True)

        with pytest.raises(InvalidSlotCountError):
            appointment.resolve_slot_count(0)


class TestSubSlots:
    """Test cases for fitting a booking span into the day window."""

    def test_span_inside_window(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()], allow_multiple_slots=True)

        windows = appointment.sub_slots(at(10, 15), 2)

        assert [(window.start, window.end) for window in windows] == [
            (at(10, 15), at(10, 45)),
            (at(10, 45), at(11, 15)),
        ]

    def test_closed_day(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()])

        with pytest.raises(NotBookableError, match="not available on the requested day"):
            appointment.sub_slots(at(10, day=TUESDAY), 1)

    @pytest.mark.parametrize("hour,minute", [(8, 59), (11, 31), (12, 0), (23, 0)])
    def test_start_outside_window(self, hour, minute):
        appointment = make_resource_appointment(uuid4(), [uuid4()])

        with pytest.raises(NotBookableError, match="outside the appointment schedule"):
            appointment.sub_slots(at(hour, minute), 1)

    def test_span_past_closing_reports_maximum(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()], allow_multiple_slots=True)

        with pytest.raises(InvalidSlotCountError) as excinfo:
            appointment.sub_slots(at(10, 30), 4)

        assert excinfo.value.context["maximum"] == 3


class TestPricingAndCounters:
    """Test cases for pricing and the bookings counter."""

    def test_paid_price_scales_with_slots(self):
        appointment = make_resource_appointment(
            uuid4(), [uuid4()], is_paid=True, price_per_slot=Decimal("12.50"), allow_multiple_slots=True
        )

        assert appointment.price_for(3) == Decimal("37.50")
        assert appointment.initial_payment_status() == PaymentStatus.PENDING

    def test_free_bookings_are_settled(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()])

        assert appointment.initial_payment_status() == PaymentStatus.PAID

    def test_record_and_release(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()])

        appointment.record_booking()
        appointment.record_booking()
        appointment.release_booking()

        assert appointment.bookings_count == 1

    def test_release_below_zero_rejected(self):
        appointment = make_resource_appointment(uuid4(), [uuid4()])

        with pytest.raises(ValueError):
            appointment.release_booking()

    def test_publish_toggle(self):
        appointment = AppointmentType(
            organization_id=uuid4(),
            title="Consultation",
            duration_minutes=30,
            book_mode=BookMode.BY_USER,
            weekly_schedule=monday_schedule(),
            allowed_provider_ids=[uuid4()],
        )

        assert appointment.is_published is False
        appointment.publish()
        assert appointment.is_published is True
        appointment.unpublish()
        assert appointment.is_published is False
