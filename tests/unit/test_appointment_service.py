"""Unit tests for the appointment catalog service."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from appointment_booking.application.services.appointment_service import AppointmentDraft, AppointmentService
from appointment_booking.domain.entities.appointment import AssignmentMode, BookMode
from appointment_booking.domain.exceptions import (
    InvalidAppointmentError,
    InvalidProviderOrResourceError,
    LinkCapacityReachedError,
    LinkExpiredError,
    NotBookableError,
    NotFoundError,
    PermissionDeniedError,
)
from appointment_booking.domain.value_objects.secret_link import SecretLink

from builders import NOW, make_organization, make_resource_appointment, seed

BUSINESS_HOURS = [
    {"day": "MONDAY", "from": "08:00", "to": "18:00"},
    {"day": "WEDNESDAY", "from": "08:00", "to": "12:00"},
]


@pytest.fixture
def appointment_service(uow_factory):
    return AppointmentService(uow_factory)


def resource_draft(resource_ids, **overrides):
    options = dict(
        title="Court rental",
        duration_minutes=60,
        book_mode=BookMode.BY_RESOURCE,
        weekly_schedule=[{"day": "MONDAY", "from": "09:00", "to": "17:00"}],
        allowed_resource_ids=list(resource_ids),
    )
    options.update(overrides)
    return AppointmentDraft(**options)


class TestCatalogSetup:
    """Test cases for organizations and resources."""

    @pytest.mark.asyncio
    async def test_create_organization_and_resource(self, appointment_service, store):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 4)

        assert store.organizations[organization.id].name == "Sports Club"
        assert store.resources[resource.id].capacity == 4

    @pytest.mark.asyncio
    async def test_invalid_business_hours(self, appointment_service):
        with pytest.raises(InvalidAppointmentError):
            await appointment_service.create_organization("Sports Club", [{"day": "MONDAY", "from": "9", "to": "10"}])

    @pytest.mark.asyncio
    async def test_invalid_resource_capacity(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)

        with pytest.raises(InvalidProviderOrResourceError):
            await appointment_service.create_resource(organization.id, "Court 1", 0)

    @pytest.mark.asyncio
    async def test_resource_for_missing_organization(self, appointment_service):
        with pytest.raises(NotFoundError):
            await appointment_service.create_resource(uuid4(), "Court 1", 1)


class TestAppointmentConfiguration:
    """Test cases for appointment creation and updates."""

    @pytest.mark.asyncio
    async def test_create_appointment_starts_unpublished(self, appointment_service, store):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)

        appointment = await appointment_service.create_appointment(organization.id, resource_draft([resource.id]))

        assert appointment.is_published is False
        assert appointment.allowed_resource_ids == (resource.id,)
        assert store.appointments[appointment.id].title == "Court rental"

    @pytest.mark.asyncio
    async def test_schedule_must_fit_business_hours(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)

        with pytest.raises(InvalidAppointmentError, match="within business hours"):
            await appointment_service.create_appointment(organization.id, resource_draft(
                [resource.id], weekly_schedule=[{"day": "WEDNESDAY", "from": "09:00", "to": "13:00"}]
            ))
        with pytest.raises(InvalidAppointmentError, match="No business hours defined for FRIDAY"):
            await appointment_service.create_appointment(organization.id, resource_draft(
                [resource.id], weekly_schedule=[{"day": "FRIDAY", "from": "09:00", "to": "10:00"}]
            ))

    @pytest.mark.asyncio
    async def test_duplicate_schedule_days_rejected(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)

        with pytest.raises(InvalidAppointmentError, match="more than one entry"):
            await appointment_service.create_appointment(organization.id, resource_draft(
                [resource.id],
                weekly_schedule=[
                    {"day": "MONDAY", "from": "09:00", "to": "10:00"},
                    {"day": "MONDAY", "from": "11:00", "to": "12:00"},
                ],
            ))

    @pytest.mark.asyncio
    async def test_resource_of_another_organization_rejected(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        other = await appointment_service.create_organization("Other Club", BUSINESS_HOURS)
        foreign = await appointment_service.create_resource(other.id, "Court 9", 1)

        with pytest.raises(InvalidProviderOrResourceError):
            await appointment_service.create_appointment(organization.id, resource_draft([foreign.id]))

    @pytest.mark.asyncio
    async def test_providers_must_be_members(self, appointment_service):
        member = uuid4()
        organization = await appointment_service.create_organization("Clinic", BUSINESS_HOURS, [member])
        draft = AppointmentDraft(
            title="Consultation",
            duration_minutes=30,
            book_mode=BookMode.BY_USER,
            weekly_schedule=[{"day": "MONDAY", "from": "09:00", "to": "12:00"}],
            assignment_mode=AssignmentMode.AUTOMATIC,
            allowed_provider_ids=[member, uuid4()],
        )

        with pytest.raises(InvalidProviderOrResourceError, match="not a member"):
            await appointment_service.create_appointment(organization.id, draft)

    @pytest.mark.asyncio
    async def test_paid_without_price_rejected(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)

        with pytest.raises(InvalidAppointmentError):
            await appointment_service.create_appointment(organization.id, resource_draft([resource.id], is_paid=True))

    @pytest.mark.asyncio
    async def test_free_appointment_ignores_lead_hours(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)

        appointment = await appointment_service.create_appointment(
            organization.id, resource_draft([resource.id], cancellation_lead_hours=48)
        )

        assert appointment.cancellation_lead_hours == 0

    @pytest.mark.asyncio
    async def test_update_keeps_publication_link_and_counter(self, appointment_service, store):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)
        appointment = await appointment_service.create_appointment(organization.id, resource_draft([resource.id]))
        await appointment_service.publish(appointment.id, organization.id)
        link = await appointment_service.generate_secret_link(appointment.id, organization.id, expiry_capacity=3)

        updated = await appointment_service.update_appointment(
            appointment.id,
            organization.id,
            resource_draft([resource.id], title="Court rental (indoor)", is_paid=True, price_per_slot=Decimal("30")),
        )

        assert updated.id == appointment.id
        assert updated.title == "Court rental (indoor)"
        assert updated.is_published is True
        assert updated.secret_link == link
        assert store.appointments[appointment.id].price_per_slot == Decimal("30")

    @pytest.mark.asyncio
    async def test_intake_questions_and_messages_are_stored(self, appointment_service, store):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)
        questions = [
            {"id": "level", "question": "Skill level?", "type": "SELECT", "required": True,
             "options": ["Beginner", "Advanced"]},
            {"id": "notes", "question": "Anything else?", "type": "TEXTAREA", "required": False},
        ]

        appointment = await appointment_service.create_appointment(organization.id, resource_draft(
            [resource.id],
            questions=questions,
            intro_message="Bring your own racket.",
            confirmation_message="See you on court!",
        ))

        stored = store.appointments[appointment.id]
        assert stored.questions == questions
        assert stored.intro_message == "Bring your own racket."
        assert stored.confirmation_message == "See you on court!"

    @pytest.mark.asyncio
    async def test_question_without_text_rejected(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)

        with pytest.raises(InvalidAppointmentError, match="question text"):
            await appointment_service.create_appointment(organization.id, resource_draft(
                [resource.id], questions=[{"id": "level", "type": "TEXT"}]
            ))


class TestPublication:
    """Test cases for publishing and secret links."""

    @pytest.mark.asyncio
    async def test_publish_and_list(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)
        listed = await appointment_service.create_appointment(organization.id, resource_draft([resource.id]))
        await appointment_service.create_appointment(organization.id, resource_draft([resource.id], title="Hidden"))

        await appointment_service.publish(listed.id, organization.id)

        published = await appointment_service.list_published(organization.id)
        assert [appointment.id for appointment in published] == [listed.id]
        assert await appointment_service.list_published(uuid4()) == []

        await appointment_service.unpublish(listed.id, organization.id)
        assert await appointment_service.list_published() == []

    @pytest.mark.asyncio
    async def test_other_organization_cannot_publish(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)
        appointment = await appointment_service.create_appointment(organization.id, resource_draft([resource.id]))

        with pytest.raises(PermissionDeniedError):
            await appointment_service.publish(appointment.id, uuid4())

    @pytest.mark.asyncio
    async def test_new_link_replaces_old(self, appointment_service, store):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)
        appointment = await appointment_service.create_appointment(organization.id, resource_draft([resource.id]))

        first = await appointment_service.generate_secret_link(appointment.id, organization.id)
        second = await appointment_service.generate_secret_link(
            appointment.id, organization.id, expiry_time=datetime(2025, 12, 31, 23, 59)
        )

        stored = store.appointments[appointment.id].secret_link
        assert stored.token == second.token != first.token
        assert stored.expiry_time == datetime(2025, 12, 31, 23, 59)

    @pytest.mark.asyncio
    async def test_invalid_link_capacity(self, appointment_service):
        organization = await appointment_service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await appointment_service.create_resource(organization.id, "Court 1", 2)
        appointment = await appointment_service.create_appointment(organization.id, resource_draft([resource.id]))

        with pytest.raises(InvalidAppointmentError):
            await appointment_service.generate_secret_link(appointment.id, organization.id, expiry_capacity=0)

    @pytest.mark.asyncio
    async def test_aware_link_expiry_is_converted_to_local_time(self, uow_factory, store):
        service = AppointmentService(uow_factory, zone=timezone(timedelta(hours=2)))
        organization = await service.create_organization("Sports Club", BUSINESS_HOURS)
        resource = await service.create_resource(organization.id, "Court 1", 2)
        appointment = await service.create_appointment(organization.id, resource_draft([resource.id]))

        await service.generate_secret_link(
            appointment.id, organization.id, expiry_time=datetime(2025, 12, 31, 20, 0, tzinfo=timezone.utc)
        )

        assert store.appointments[appointment.id].secret_link.expiry_time == datetime(2025, 12, 31, 22, 0)


class TestAppointmentDetails:
    """Test cases for resolving an appointment for a visitor."""

    @pytest.fixture
    def details_service(self, uow_factory):
        return AppointmentService(uow_factory, clock=lambda: NOW)

    async def seed_appointment(self, uow_factory, **overrides):
        organization = make_organization()
        appointment = make_resource_appointment(organization.id, [uuid4()], **overrides)
        await seed(uow_factory, organization, appointment)
        return appointment

    @pytest.mark.asyncio
    async def test_published_by_id(self, details_service, uow_factory):
        appointment = await self.seed_appointment(uow_factory)

        found = await details_service.get_appointment_details(appointment.id)

        assert found.id == appointment.id

    @pytest.mark.asyncio
    async def test_unpublished_by_id_is_hidden(self, details_service, uow_factory):
        appointment = await self.seed_appointment(uow_factory, is_published=False)

        with pytest.raises(NotBookableError):
            await details_service.get_appointment_details(appointment.id)

    @pytest.mark.asyncio
    async def test_unpublished_by_link(self, details_service, uow_factory):
        appointment = await self.seed_appointment(
            uow_factory, is_published=False, secret_link=SecretLink(token="private-token")
        )

        by_token = await details_service.get_appointment_details(secret_link="private-token")
        by_id = await details_service.get_appointment_details(appointment.id, secret_link="private-token")

        assert by_token.id == by_id.id == appointment.id

    @pytest.mark.asyncio
    async def test_unknown_link(self, details_service):
        with pytest.raises(NotBookableError):
            await details_service.get_appointment_details(secret_link="no-such-token")

    @pytest.mark.asyncio
    async def test_expired_link(self, details_service, uow_factory):
        await self.seed_appointment(
            uow_factory,
            is_published=False,
            secret_link=SecretLink(token="private-token", expiry_time=NOW - timedelta(minutes=1)),
        )

        with pytest.raises(LinkExpiredError):
            await details_service.get_appointment_details(secret_link="private-token")

    @pytest.mark.asyncio
    async def test_exhausted_link(self, details_service, uow_factory):
        await self.seed_appointment(
            uow_factory,
            is_published=False,
            secret_link=SecretLink(token="private-token", expiry_capacity=2),
            bookings_count=2,
        )

        with pytest.raises(LinkCapacityReachedError):
            await details_service.get_appointment_details(secret_link="private-token")

    @pytest.mark.asyncio
    async def test_missing_appointment(self, details_service):
        with pytest.raises(NotFoundError):
            await details_service.get_appointment_details(uuid4())

    @pytest.mark.asyncio
    async def test_requires_id_or_link(self, details_service):
        with pytest.raises(ValueError):
            await details_service.get_appointment_details()
