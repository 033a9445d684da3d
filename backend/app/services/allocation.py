"""FIFO balance allocation: consume the oldest grants first."""

# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable


class GrantLike(Protocol):
    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    quantity_minutes: int
    granted_on: date


class ConsumptionLike(Protocol):
    user_id: uuid.UUID | None
    leave_type_id: uuid.UUID | None
    quantity_minutes: int | None
    consumed_on: date | None
    start_date: date | None


@dataclass
class AllocationResult:
    """Allocation outcome for one grant."""

    grant_id: uuid.UUID
    quantity_minutes: int
    consumed_minutes: int = 0

    @property
    def remaining_minutes(self) -> int:
        return self.quantity_minutes - self.consumed_minutes


def consumption_sort_key(consumption: ConsumptionLike) -> tuple[int, date]:
    """Order by consumed_on, falling back to start_date; undated consumptions go last."""
    when = consumption.consumed_on or consumption.start_date
    if when is None:
        return (1, date.max)
    return (0, when)


class FifoAllocator:
    """Incremental FIFO allocator over a fixed set of grants.

    Grants are partitioned by (user_id, leave_type_id) and ordered by
    ``granted_on``; grants sharing a date keep their input order. Each
    :meth:`apply` drains the oldest grant with remaining capacity first.
    Consumption beyond the total capacity is reported back, never
    allocated. Expiry is not taken into account.
    """

    def __init__(self, grants: Iterable[GrantLike]) -> None:
        self._results: dict[uuid.UUID, AllocationResult] = {}
        self._queues: dict[tuple[uuid.UUID, uuid.UUID], list[AllocationResult]] = defaultdict(list)
        for grant in sorted(grants, key=lambda g: g.granted_on):
            result = AllocationResult(grant_id=grant.id, quantity_minutes=grant.quantity_minutes)
            self._results[grant.id] = result
            self._queues[(grant.user_id, grant.leave_type_id)].append(result)

    @property
    def results(self) -> dict[uuid.UUID, AllocationResult]:
        return self._results

    def apply(self, consumption: ConsumptionLike) -> int:
        """Allocate one consumption. Returns the minutes no grant could cover."""
        if consumption.user_id is None or consumption.leave_type_id is None:
            return 0
        need = consumption.quantity_minutes or 0
        if need <= 0:
            return 0
        for result in self._queues.get((consumption.user_id, consumption.leave_type_id), []):
            if need == 0:
                break
            take = min(result.remaining_minutes, need)
            if take <= 0:
                continue
            result.consumed_minutes += take
            need -= take
        return need

    def apply_all(self, consumptions: Iterable[ConsumptionLike]) -> int:
        """Allocate consumptions in date order. Returns total unallocated minutes."""
        return sum(self.apply(c) for c in sorted(consumptions, key=consumption_sort_key))


def allocate(
    grants: Iterable[GrantLike],
    consumptions: Iterable[ConsumptionLike],
) -> dict[uuid.UUID, AllocationResult]:
    """Allocate consumptions to grants oldest-first; one result per grant id."""
    allocator = FifoAllocator(grants)
    allocator.apply_all(consumptions)
    return allocator.results
