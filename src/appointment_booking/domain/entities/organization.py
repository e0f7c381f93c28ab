"""Organization entity owning appointment types, resources and providers."""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID, uuid4

from ..value_objects.weekly_schedule import ScheduleEntry, WeeklySchedule


class Organization:
    """Tenant that publishes appointment types."""

    def __init__(
        self,
        name: str,
        business_hours: WeeklySchedule,
        provider_ids: Iterable[UUID] = (),
        organization_id: Optional[UUID] = None,
        created_at: Optional[datetime] = None
    ):
        if not name or not name.strip():
            raise ValueError("Organization name cannot be empty")

        self._id = organization_id or uuid4()
        self._name = name.strip()
        self._business_hours = business_hours
        self._provider_ids = frozenset(provider_ids)
        self._created_at = created_at or datetime.utcnow()

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def business_hours(self) -> WeeklySchedule:
        return self._business_hours

    @property
    def provider_ids(self) -> frozenset:
        """IDs of member users who can serve appointments."""
        return self._provider_ids

    @property
    def created_at(self) -> datetime:
        return self._created_at

    def has_provider(self, provider_id: UUID) -> bool:
        return provider_id in self._provider_ids

    def fits_business_hours(self, entry: ScheduleEntry) -> Optional[str]:
        """Return a reason string if the entry falls outside business hours, else None."""
        business_day = self._business_hours.entry_for(entry.day)
        if business_day is None:
            return f"No business hours defined for {entry.day.value}."
        if not entry.within(business_day):
            return (
                f"Schedule for {entry.day.value} must be within business hours "
                f"({business_day.opens.strftime('%H:%M')} - {business_day.closes.strftime('%H:%M')})."
            )
        return None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Organization):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __str__(self) -> str:
        return f"Organization({self._id}, {self._name})"
