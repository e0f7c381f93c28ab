"""Cancellation policy value object."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .actor import ActorRole


class CancellationOutcome(Enum):
    """Result of a cancellation request."""
    CANCELLED = "cancelled"
    ALREADY_CANCELLED = "already_cancelled"


@dataclass(frozen=True)
class CancellationDecision:
    """Whether a cancellation is permitted, and why not."""
    allowed: bool
    reason: Optional[str] = None
    hours_until_start: Optional[float] = None


@dataclass(frozen=True)
class CancellationPolicy:
    """Lead-time cancellation rule for an appointment type.

    Paid appointments require at least `lead_hours` notice when the booking
    owner cancels. Free appointments may be cancelled by the owner any time
    before the booking starts. Organization operators are never restricted.
    """

    is_paid: bool
    lead_hours: int = 0

    def __post_init__(self) -> None:
        """Validate policy."""
        if self.lead_hours < 0:
            raise ValueError("Cancellation lead hours cannot be negative")

    def evaluate(self, start_time: datetime, now: datetime, role: ActorRole) -> CancellationDecision:
        """Decide whether a booking starting at `start_time` may be cancelled at `now`."""
        hours_until_start = (start_time - now).total_seconds() / 3600

        if role == ActorRole.ORGANIZATION_OPERATOR:
            return CancellationDecision(allowed=True, hours_until_start=hours_until_start)

        if self.is_paid:
            if hours_until_start < self.lead_hours:
                return CancellationDecision(
                    allowed=False,
                    reason=f"Paid appointments can only be cancelled at least {self.lead_hours} hours in advance",
                    hours_until_start=hours_until_start,
                )
            return CancellationDecision(allowed=True, hours_until_start=hours_until_start)

        if hours_until_start <= 0:
            return CancellationDecision(
                allowed=False,
                reason="Bookings cannot be cancelled after they have started",
                hours_until_start=hours_until_start,
            )
        return CancellationDecision(allowed=True, hours_until_start=hours_until_start)
