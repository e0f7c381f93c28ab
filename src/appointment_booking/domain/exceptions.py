"""Domain error taxonomy for availability, admission and cancellation."""

from typing import Any, Dict, Optional


class BookingEngineError(Exception):
    """Base class for all booking engine errors.

    Carries a stable `code` for callers and a `context` dict with the details
    needed to present an actionable message.
    """

    code = "booking_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses."""
        return {
            "detail": self.message,
            "type": self.code,
            "context": {key: str(value) if value is not None else None for key, value in self.context.items()},
        }


class NotFoundError(BookingEngineError):
    """Appointment, booking, resource or organization does not exist."""
    code = "not_found"


class NotBookableError(BookingEngineError):
    """Appointment is unreachable, or closed at the requested time.

    Raised for unpublished appointments without a valid secret link and for
    start times outside the appointment's weekly schedule.
    """
    code = "not_bookable"


class LinkExpiredError(BookingEngineError):
    """Secret link expiry time has passed."""
    code = "link_expired"


class LinkCapacityReachedError(BookingEngineError):
    """Secret link has reached its booking capacity."""
    code = "link_capacity_reached"


class InvalidSlotCountError(BookingEngineError):
    """Requested number of slots violates the multi-slot configuration."""
    code = "invalid_slot_count"


class InvalidProviderOrResourceError(BookingEngineError):
    """Requested provider or resource is missing or not in the allowed set."""
    code = "invalid_provider_or_resource"


class CapacityExceededError(BookingEngineError):
    """A sub-slot of the requested range has no remaining capacity."""
    code = "capacity_exceeded"

    def __init__(self, message: str, slot_index: int, capacity: Optional[int] = None, **context: Any):
        super().__init__(message, slot_index=slot_index, capacity=capacity, **context)
        self.slot_index = slot_index
        self.capacity = capacity


class NoProviderAvailableError(BookingEngineError):
    """Automatic assignment found no provider free in every sub-slot."""
    code = "no_provider_available"

    def __init__(self, message: str, slot_index: int, **context: Any):
        super().__init__(message, slot_index=slot_index, **context)
        self.slot_index = slot_index


class PolicyViolationError(BookingEngineError):
    """Cancellation rejected by the appointment's cancellation policy."""
    code = "policy_violation"


class PermissionDeniedError(BookingEngineError):
    """Actor is not allowed to act on the target booking or appointment."""
    code = "permission_denied"


class InvalidAppointmentError(BookingEngineError):
    """Appointment configuration is invalid."""
    code = "invalid_appointment"


class ConcurrencyConflictError(BookingEngineError):
    """Commit-time re-validation lost a race with a concurrent transaction.

    Retried internally by the admission controller; surfaced only when retries
    are exhausted.
    """
    code = "concurrency_conflict"


class StorageUnavailableError(BookingEngineError):
    """Persistence layer failure (connection loss and similar). Never retried by the core."""
    code = "storage_unavailable"
