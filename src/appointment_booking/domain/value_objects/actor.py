"""Actor value object identifying who requests an action."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID


class ActorRole(Enum):
    """Role claim carried by the caller's credentials."""
    USER = "user"
    ORGANIZATION_OPERATOR = "organization_operator"


@dataclass(frozen=True)
class Actor:
    """Authenticated party acting on bookings or appointments."""

    user_id: UUID
    role: ActorRole = ActorRole.USER
    organization_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        """Validate actor."""
        if self.role == ActorRole.ORGANIZATION_OPERATOR and self.organization_id is None:
            raise ValueError("Organization operators must belong to an organization")

    @property
    def is_operator(self) -> bool:
        """Check if actor operates an organization."""
        return self.role == ActorRole.ORGANIZATION_OPERATOR

    def operates(self, organization_id: UUID) -> bool:
        """Check if actor is an operator of the given organization."""
        return self.is_operator and self.organization_id == organization_id
