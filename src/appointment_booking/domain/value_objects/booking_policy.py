"""Booking policy variants describing how an appointment's capacity is shaped.

An appointment is booked either against a pool of resources with individual
capacities, or against a roster of providers who each take one booking at a
time. Provider rosters are further split by who picks the provider: the visitor,
or the engine (least-loaded first). Every capacity decision dispatches on
exactly one of these variants.
"""

from dataclasses import dataclass
from typing import Tuple, Union
from uuid import UUID


@dataclass(frozen=True)
class ResourcePool:
    """Bookings consume capacity on one of the allowed resources."""

    resource_ids: Tuple[UUID, ...]

    def allows(self, resource_id: UUID) -> bool:
        return resource_id in self.resource_ids


@dataclass(frozen=True)
class VisitorChosenProvider:
    """The visitor selects which provider serves the booking."""

    provider_ids: Tuple[UUID, ...]

    def allows(self, provider_id: UUID) -> bool:
        return provider_id in self.provider_ids


@dataclass(frozen=True)
class AutoAssignedProvider:
    """The engine assigns the least-loaded free provider."""

    provider_ids: Tuple[UUID, ...]

    def allows(self, provider_id: UUID) -> bool:
        return provider_id in self.provider_ids


BookingPolicy = Union[ResourcePool, VisitorChosenProvider, AutoAssignedProvider]
