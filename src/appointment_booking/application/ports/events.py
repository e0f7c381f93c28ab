"""Port interface for outbound domain events (notification hook)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class DomainEventType(Enum):
    """Booking lifecycle events emitted after commit."""
    BOOKING_CREATED = "booking.created"
    BOOKING_CANCELLED = "booking.cancelled"


@dataclass(frozen=True)
class DomainEvent:
    """Event handed to the notification subsystem."""

    type: DomainEventType
    appointment_id: UUID
    booking_id: UUID
    requires_payment: bool = False
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "appointment_id": str(self.appointment_id),
            "booking_id": str(self.booking_id),
            "requires_payment": self.requires_payment,
            "occurred_at": self.occurred_at.isoformat() + "Z",
        }


class EventPublisher(ABC):
    """Fire-and-forget event sink. Must not block on delivery."""

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        """Hand an event off for delivery."""
        raise NotImplementedError
