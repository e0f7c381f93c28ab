"""Resource entity: a bookable asset with concurrent capacity."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4


class Resource:
    """Bookable resource (room, court, device) owned by an organization."""

    def __init__(
        self,
        organization_id: UUID,
        name: str,
        capacity: int,
        resource_id: Optional[UUID] = None,
        created_at: Optional[datetime] = None
    ):
        if not name or not name.strip():
            raise ValueError("Resource name cannot be empty")
        if capacity < 1:
            raise ValueError("Resource capacity must be at least 1")

        self._id = resource_id or uuid4()
        self._organization_id = organization_id
        self._name = name.strip()
        self._capacity = capacity
        self._created_at = created_at or datetime.utcnow()

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def organization_id(self) -> UUID:
        return self._organization_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def capacity(self) -> int:
        """Maximum concurrent bookings of any single slot."""
        return self._capacity

    @property
    def created_at(self) -> datetime:
        return self._created_at

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __str__(self) -> str:
        return f"Resource({self._id}, {self._name}, capacity={self._capacity})"
