# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections import defaultdict
from typing import TYPE_CHECKING

from app.models.enums import GrantSource
from app.schemas.balance import BalanceListResponse, BalanceSummary, GrantBalanceResponse
from app.services import repository
from app.services.allocation import FifoAllocator, consumption_sort_key

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def get_balances(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    user_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
) -> BalanceListResponse:
    """Allocate consumptions to grants oldest-first and report what is left."""
    grants = await repository.fetch_grants(session, company_id, user_id=user_id, leave_type_id=leave_type_id)
    consumptions = await repository.fetch_consumptions(
        session, company_id, user_id=user_id, leave_type_id=leave_type_id
    )

    allocator = FifoAllocator(grants)
    unallocated: dict[tuple[uuid.UUID, uuid.UUID], int] = defaultdict(int)
    for consumption in sorted(consumptions, key=consumption_sort_key):
        unallocated[(consumption.user_id, consumption.leave_type_id)] += allocator.apply(consumption)

    items: list[GrantBalanceResponse] = []
    totals: dict[tuple[uuid.UUID, uuid.UUID], list[int]] = defaultdict(lambda: [0, 0])
    for grant in grants:
        allocation = allocator.results[grant.id]
        items.append(
            GrantBalanceResponse(
                grant_id=grant.id,
                user_id=grant.user_id,
                leave_type_id=grant.leave_type_id,
                granted_on=grant.granted_on,
                expires_on=grant.expires_on,
                source=GrantSource(grant.source),
                quantity_minutes=grant.quantity_minutes,
                consumed_minutes=allocation.consumed_minutes,
                remaining_minutes=allocation.remaining_minutes,
            )
        )
        key = (grant.user_id, grant.leave_type_id)
        totals[key][0] += grant.quantity_minutes
        totals[key][1] += allocation.consumed_minutes

    keys = set(totals) | {k for k, v in unallocated.items() if v > 0}
    summaries = [
        BalanceSummary(
            user_id=key[0],
            leave_type_id=key[1],
            granted_minutes=totals[key][0],
            consumed_minutes=totals[key][1],
            remaining_minutes=totals[key][0] - totals[key][1],
            unallocated_minutes=unallocated.get(key, 0),
        )
        for key in sorted(keys, key=lambda k: (str(k[0]), str(k[1])))
    ]
    return BalanceListResponse(items=items, summaries=summaries, total=len(items))
