"""Appointment catalog: organizations, resources and appointment types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import UUID

from ..ports.repositories import UnitOfWork, UnitOfWorkFactory
from ...domain.entities.appointment import AppointmentType, AssignmentMode, BookMode
from ...domain.entities.organization import Organization
from ...domain.entities.resource import Resource
from ...domain.exceptions import (
    InvalidAppointmentError,
    InvalidProviderOrResourceError,
    NotFoundError,
    NotBookableError,
    PermissionDeniedError,
)
from ...domain.value_objects.secret_link import SecretLink
from ...domain.value_objects.time_window import to_wall_clock
from ...domain.value_objects.weekly_schedule import WeeklySchedule
from ...infrastructure.logging import get_logger, log_business_rule_violation


@dataclass
class AppointmentDraft:
    """Operator-supplied appointment configuration, before validation."""

    title: str
    duration_minutes: int
    book_mode: BookMode
    weekly_schedule: List[dict]
    assignment_mode: AssignmentMode = AssignmentMode.BY_VISITOR
    allowed_provider_ids: List[UUID] = field(default_factory=list)
    allowed_resource_ids: List[UUID] = field(default_factory=list)
    allow_multiple_slots: bool = False
    max_slots_per_booking: Optional[int] = None
    is_paid: bool = False
    price_per_slot: Optional[Decimal] = None
    cancellation_lead_hours: int = 0
    description: Optional[str] = None
    location: Optional[str] = None
    questions: List[Dict[str, Any]] = field(default_factory=list)
    intro_message: Optional[str] = None
    confirmation_message: Optional[str] = None


class AppointmentService:
    """Application service for the appointment catalog."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Optional[Callable[[], datetime]] = None,
        zone: tzinfo = timezone.utc
    ):
        self._uow_factory = uow_factory
        self._zone = zone
        self._clock = clock or (lambda: datetime.now(zone).replace(tzinfo=None))
        self._logger = get_logger(__name__)

    async def create_organization(
        self,
        name: str,
        business_hours: List[dict],
        provider_ids: Iterable[UUID] = ()
    ) -> Organization:
        """Register an organization with its business hours and provider roster."""
        try:
            organization = Organization(
                name=name,
                business_hours=WeeklySchedule.from_list(business_hours),
                provider_ids=provider_ids,
            )
        except ValueError as e:
            raise InvalidAppointmentError(str(e)) from e

        async with self._uow_factory() as uow:
            await uow.organizations.save(organization)
            await uow.commit()

        self._logger.info(f"Created organization {organization.id} ({organization.name})")
        return organization

    async def create_resource(self, organization_id: UUID, name: str, capacity: int) -> Resource:
        """Create a bookable resource for an organization."""
        async with self._uow_factory() as uow:
            await self._get_organization(uow, organization_id)
            try:
                resource = Resource(organization_id=organization_id, name=name, capacity=capacity)
            except ValueError as e:
                raise InvalidProviderOrResourceError(str(e)) from e
            await uow.resources.save(resource)
            await uow.commit()

        self._logger.info(f"Created resource {resource.id} with capacity {resource.capacity}")
        return resource

    async def create_appointment(self, organization_id: UUID, draft: AppointmentDraft) -> AppointmentType:
        """Create an unpublished appointment type.

        Raises:
            NotFoundError: If the organization does not exist
            InvalidAppointmentError: If the configuration is invalid or outside business hours
            InvalidProviderOrResourceError: If an allowed ID does not belong to the organization
        """
        async with self._uow_factory() as uow:
            organization = await self._get_organization(uow, organization_id)
            appointment = await self._build(uow, organization, draft)
            await uow.appointments.save(appointment)
            await uow.commit()

        self._logger.info(
            f"Created appointment {appointment.id} ({appointment.book_mode.value}) "
            f"for organization {organization_id}"
        )
        return appointment

    async def update_appointment(
        self,
        appointment_id: UUID,
        organization_id: UUID,
        draft: AppointmentDraft
    ) -> AppointmentType:
        """Replace an appointment's configuration, keeping its publication state, link and counter."""
        async with self._uow_factory() as uow:
            existing = await self._get_owned(uow, appointment_id, organization_id, for_update=True)
            organization = await self._get_organization(uow, organization_id)
            appointment = await self._build(uow, organization, draft, existing)
            await uow.appointments.save(appointment)
            await uow.commit()

        self._logger.info(f"Updated appointment {appointment_id}")
        return appointment

    async def get_appointment_details(
        self,
        appointment_id: Optional[UUID] = None,
        secret_link: Optional[str] = None
    ) -> AppointmentType:
        """Resolve an appointment for a visitor, by ID or by secret link token.

        Applies the same reachability rules as booking admission, so an
        unpublished appointment is only returned for a valid, live link.

        Raises:
            NotFoundError: If no appointment has the given ID
            NotBookableError: If the appointment is unpublished and the link does not match
            LinkExpiredError, LinkCapacityReachedError: If the link is no longer usable
        """
        if appointment_id is None and not secret_link:
            raise ValueError("Either an appointment ID or a secret link is required")

        async with self._uow_factory() as uow:
            if appointment_id is None:
                appointment = await uow.appointments.find_by_secret_link(secret_link)
                if appointment is None:
                    raise NotBookableError("This appointment is not available for booking")
            else:
                appointment = await uow.appointments.find_by_id(appointment_id)
                if appointment is None:
                    raise NotFoundError("Appointment not found", appointment_id=appointment_id)

        appointment.ensure_reachable(secret_link, self._clock())
        return appointment

    async def publish(self, appointment_id: UUID, organization_id: UUID) -> AppointmentType:
        """List an appointment publicly."""
        async with self._uow_factory() as uow:
            appointment = await self._get_owned(uow, appointment_id, organization_id, for_update=True)
            appointment.publish()
            await uow.appointments.save(appointment)
            await uow.commit()

        self._logger.info(f"Published appointment {appointment_id}")
        return appointment

    async def unpublish(self, appointment_id: UUID, organization_id: UUID) -> AppointmentType:
        """Hide an appointment; it stays reachable only through its secret link."""
        async with self._uow_factory() as uow:
            appointment = await self._get_owned(uow, appointment_id, organization_id, for_update=True)
            appointment.unpublish()
            await uow.appointments.save(appointment)
            await uow.commit()

        self._logger.info(f"Unpublished appointment {appointment_id}")
        return appointment

    async def generate_secret_link(
        self,
        appointment_id: UUID,
        organization_id: UUID,
        expiry_time: Optional[datetime] = None,
        expiry_capacity: Optional[int] = None
    ) -> SecretLink:
        """Issue a new secret link, replacing any previous one."""
        try:
            link = SecretLink.generate(
                expiry_time=to_wall_clock(expiry_time, self._zone) if expiry_time else None,
                expiry_capacity=expiry_capacity,
            )
        except ValueError as e:
            raise InvalidAppointmentError(str(e)) from e

        async with self._uow_factory() as uow:
            appointment = await self._get_owned(uow, appointment_id, organization_id, for_update=True)
            appointment.issue_secret_link(link)
            await uow.appointments.save(appointment)
            await uow.commit()

        self._logger.info(f"Issued secret link for appointment {appointment_id}")
        return link

    async def list_published(self, organization_id: Optional[UUID] = None) -> List[AppointmentType]:
        """List published appointments, optionally for one organization."""
        async with self._uow_factory() as uow:
            return await uow.appointments.find_published(organization_id)

    async def _get_organization(self, uow: UnitOfWork, organization_id: UUID) -> Organization:
        organization = await uow.organizations.find_by_id(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found", organization_id=organization_id)
        return organization

    async def _get_owned(
        self,
        uow: UnitOfWork,
        appointment_id: UUID,
        organization_id: UUID,
        for_update: bool = False
    ) -> AppointmentType:
        appointment = await uow.appointments.find_by_id(appointment_id, for_update=for_update)
        if appointment is None:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        if appointment.organization_id != organization_id:
            raise PermissionDeniedError(
                "Appointment belongs to another organization",
                appointment_id=appointment_id,
            )
        return appointment

    async def _build(
        self,
        uow: UnitOfWork,
        organization: Organization,
        draft: AppointmentDraft,
        existing: Optional[AppointmentType] = None
    ) -> AppointmentType:
        try:
            schedule = WeeklySchedule.from_list(draft.weekly_schedule)
        except ValueError as e:
            raise InvalidAppointmentError(str(e)) from e

        for entry in schedule.entries:
            reason = organization.fits_business_hours(entry)
            if reason is not None:
                log_business_rule_violation(
                    self._logger,
                    "schedule_outside_business_hours",
                    reason,
                    organization_id=str(organization.id),
                )
                raise InvalidAppointmentError(reason, day=entry.day.value)

        if draft.book_mode == BookMode.BY_USER:
            for provider_id in draft.allowed_provider_ids:
                if not organization.has_provider(provider_id):
                    raise InvalidProviderOrResourceError(
                        "Provider is not a member of this organization",
                        provider_id=provider_id,
                    )
        else:
            resources = {
                resource.id: resource
                for resource in await uow.resources.find_by_ids(draft.allowed_resource_ids)
            }
            for resource_id in draft.allowed_resource_ids:
                resource = resources.get(resource_id)
                if resource is None or resource.organization_id != organization.id:
                    raise InvalidProviderOrResourceError(
                        "Resource does not belong to this organization",
                        resource_id=resource_id,
                    )

        try:
            return AppointmentType(
                organization_id=organization.id,
                title=draft.title,
                duration_minutes=draft.duration_minutes,
                book_mode=draft.book_mode,
                weekly_schedule=schedule,
                assignment_mode=draft.assignment_mode,
                allowed_provider_ids=draft.allowed_provider_ids,
                allowed_resource_ids=draft.allowed_resource_ids,
                allow_multiple_slots=draft.allow_multiple_slots,
                max_slots_per_booking=draft.max_slots_per_booking,
                is_paid=draft.is_paid,
                price_per_slot=draft.price_per_slot,
                cancellation_lead_hours=draft.cancellation_lead_hours if draft.is_paid else 0,
                description=draft.description,
                location=draft.location,
                questions=draft.questions,
                intro_message=draft.intro_message,
                confirmation_message=draft.confirmation_message,
                is_published=existing.is_published if existing else False,
                secret_link=existing.secret_link if existing else None,
                bookings_count=existing.bookings_count if existing else 0,
                appointment_id=existing.id if existing else None,
                created_at=existing.created_at if existing else None,
            )
        except ValueError as e:
            raise InvalidAppointmentError(str(e)) from e
