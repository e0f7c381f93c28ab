"""Capacity evaluation for candidate slots against existing active bookings."""

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from ...domain.entities.booking import Booking
from ...domain.entities.resource import Resource
from ...domain.value_objects.booking_policy import (
    AutoAssignedProvider,
    BookingPolicy,
    ResourcePool,
    VisitorChosenProvider,
)
from ...domain.value_objects.time_window import TimeWindow


@dataclass(frozen=True)
class SlotSelector:
    """Optional concrete resource or provider requested by the caller."""
    resource_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None


@dataclass(frozen=True)
class CapacityResult:
    """Outcome of a capacity evaluation.

    `remaining` is the smallest free capacity across the evaluated sub-slots.
    On failure, `failed_slot_index` is the 0-based index of the first sub-slot
    lacking capacity.
    """
    available: bool
    remaining: int
    chosen_resource_id: Optional[UUID] = None
    chosen_provider_id: Optional[UUID] = None
    failed_slot_index: Optional[int] = None
    capacity: Optional[int] = None


class CapacityEvaluator:
    """Computes remaining capacity per booking policy.

    Pure and deterministic: callers pass in every active booking that may
    overlap the windows, and the evaluator never touches storage.
    """

    def evaluate(
        self,
        policy: BookingPolicy,
        windows: Sequence[TimeWindow],
        active_bookings: Iterable[Booking],
        resources: Optional[Mapping[UUID, Resource]] = None,
        selector: SlotSelector = SlotSelector(),
        provider_loads: Optional[Mapping[UUID, int]] = None,
        assign: bool = False
    ) -> CapacityResult:
        """Evaluate capacity of every window for the given policy.

        Args:
            policy: Booking policy variant of the appointment
            windows: Contiguous sub-slots to check; one window for a single slot
            active_bookings: Active bookings that may overlap the windows
            resources: Resources by ID (required for resource pools)
            selector: Requested resource or provider, if any
            provider_loads: Active-booking count per provider, for automatic assignment
            assign: Pick a provider for automatic assignment instead of an aggregate count

        Returns:
            CapacityResult describing availability
        """
        if not windows:
            raise ValueError("At least one window is required")

        bookings = [booking for booking in active_bookings if booking.is_active]
        resources = resources or {}

        if isinstance(policy, ResourcePool):
            if selector.resource_id is not None:
                resource = resources.get(selector.resource_id)
                if resource is None:
                    raise ValueError(f"Unknown resource: {selector.resource_id}")
                return self._evaluate_resource(resource, windows, bookings)
            return self._evaluate_resource_pool(policy, windows, bookings, resources)

        if isinstance(policy, (VisitorChosenProvider, AutoAssignedProvider)):
            if selector.provider_id is not None:
                return self._evaluate_provider(selector.provider_id, windows, bookings)
            if assign and isinstance(policy, AutoAssignedProvider):
                return self._assign_provider(policy.provider_ids, windows, bookings, provider_loads or {})
            return self._evaluate_provider_roster(policy.provider_ids, windows, bookings)

        raise TypeError(f"Unsupported booking policy: {policy!r}")

    def _evaluate_resource(
        self,
        resource: Resource,
        windows: Sequence[TimeWindow],
        bookings: List[Booking]
    ) -> CapacityResult:
        remaining_overall = resource.capacity
        for index, window in enumerate(windows):
            used = sum(1 for booking in bookings if booking.resource_id == resource.id and booking.overlaps(window))
            remaining = resource.capacity - used
            if remaining <= 0:
                return CapacityResult(
                    available=False,
                    remaining=0,
                    chosen_resource_id=resource.id,
                    failed_slot_index=index,
                    capacity=resource.capacity,
                )
            remaining_overall = min(remaining_overall, remaining)

        return CapacityResult(
            available=True,
            remaining=remaining_overall,
            chosen_resource_id=resource.id,
            capacity=resource.capacity,
        )

    def _evaluate_resource_pool(
        self,
        policy: ResourcePool,
        windows: Sequence[TimeWindow],
        bookings: List[Booking],
        resources: Mapping[UUID, Resource]
    ) -> CapacityResult:
        total_capacity = sum(resources[rid].capacity for rid in policy.resource_ids if rid in resources)
        remaining_overall = total_capacity
        for index, window in enumerate(windows):
            used = sum(
                1 for booking in bookings
                if booking.resource_id is not None
                and policy.allows(booking.resource_id)
                and booking.overlaps(window)
            )
            remaining = total_capacity - used
            if remaining <= 0:
                return CapacityResult(available=False, remaining=0, failed_slot_index=index, capacity=total_capacity)
            remaining_overall = min(remaining_overall, remaining)

        return CapacityResult(available=True, remaining=remaining_overall, capacity=total_capacity)

    def _evaluate_provider(
        self,
        provider_id: UUID,
        windows: Sequence[TimeWindow],
        bookings: List[Booking]
    ) -> CapacityResult:
        for index, window in enumerate(windows):
            busy = any(
                booking.assigned_provider_id == provider_id and booking.overlaps(window)
                for booking in bookings
            )
            if busy:
                return CapacityResult(
                    available=False,
                    remaining=0,
                    chosen_provider_id=provider_id,
                    failed_slot_index=index,
                    capacity=1,
                )

        return CapacityResult(available=True, remaining=1, chosen_provider_id=provider_id, capacity=1)

    def _evaluate_provider_roster(
        self,
        provider_ids: Sequence[UUID],
        windows: Sequence[TimeWindow],
        bookings: List[Booking]
    ) -> CapacityResult:
        roster = set(provider_ids)
        remaining_overall = len(roster)
        for index, window in enumerate(windows):
            busy = {
                booking.assigned_provider_id for booking in bookings
                if booking.assigned_provider_id in roster and booking.overlaps(window)
            }
            remaining = len(roster) - len(busy)
            if remaining <= 0:
                return CapacityResult(available=False, remaining=0, failed_slot_index=index, capacity=len(roster))
            remaining_overall = min(remaining_overall, remaining)

        return CapacityResult(available=True, remaining=remaining_overall, capacity=len(roster))

    def _assign_provider(
        self,
        provider_ids: Sequence[UUID],
        windows: Sequence[TimeWindow],
        bookings: List[Booking],
        provider_loads: Mapping[UUID, int]
    ) -> CapacityResult:
        """Greedy least-loaded assignment; load ties keep roster order."""
        ranked = sorted(
            enumerate(provider_ids),
            key=lambda item: (provider_loads.get(item[1], 0), item[0]),
        )
        candidates = [provider_id for _, provider_id in ranked]

        for index, window in enumerate(windows):
            busy = {booking.assigned_provider_id for booking in bookings if booking.overlaps(window)}
            candidates = [provider_id for provider_id in candidates if provider_id not in busy]
            if not candidates:
                return CapacityResult(available=False, remaining=0, failed_slot_index=index, capacity=len(provider_ids))

        return CapacityResult(
            available=True,
            remaining=len(candidates),
            chosen_provider_id=candidates[0],
            capacity=len(provider_ids),
        )
