"""Event publisher implementations for booking lifecycle notifications."""

import logging
from typing import List

from appointment_booking.application.ports.events import DomainEvent, EventPublisher
from appointment_booking.infrastructure.logging import get_logger, log_with_extra


class LoggingEventPublisher(EventPublisher):
    """Writes events to the structured log for a downstream shipper to pick up."""

    def __init__(self):
        self._logger = get_logger(__name__)

    def publish(self, event: DomainEvent) -> None:
        """Log the event."""
        log_with_extra(
            self._logger,
            logging.INFO,
            f"Domain event {event.type.value}",
            event=event.to_dict(),
        )


class RecordingEventPublisher(EventPublisher):
    """Keeps published events in memory."""

    def __init__(self):
        self.events: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self.events.append(event)
