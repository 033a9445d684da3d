"""Carryover: roll unused minutes of the lapsing grant cycle into the next grant."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import timedelta
from typing import TYPE_CHECKING

from app.models.enums import AccrualMethod
from app.services.allocation import allocate

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable
    from datetime import date

    from app.schemas.grant import PreviewRow
    from app.schemas.policy import LeavePolicySettings
    from app.services.allocation import ConsumptionLike, GrantLike

logger = logging.getLogger(__name__)


def carryover_note(minutes: int) -> str:
    return f"carryover:{minutes}"


def compute_carryover_minutes(
    policy: LeavePolicySettings,
    grant_date: date,
    grants: Iterable[GrantLike],
    consumptions: Iterable[ConsumptionLike],
) -> int:
    """Unused minutes of grants expiring the day before ``grant_date``, capped by policy.

    Only one employee's grants and consumptions for one leave type should be
    passed. Monthly policies never carry over.
    """
    if not policy.carryover_enabled or policy.accrual_method == AccrualMethod.MONTHLY:
        return 0
    grants = list(grants)
    lapse_date = grant_date - timedelta(days=1)
    lapsing = [g for g in grants if getattr(g, "expires_on", None) == lapse_date]
    if not lapsing:
        return 0

    results = allocate(grants, consumptions)
    leftover = sum(max(results[g.id].remaining_minutes, 0) for g in lapsing)
    cap = policy.carryover_cap_minutes
    if cap is not None:
        leftover = min(leftover, cap)
    if leftover > 0:
        logger.debug("Carrying over %d minutes into %s", leftover, grant_date)
    return leftover


def apply_carryover(
    policy: LeavePolicySettings,
    rows: list[PreviewRow],
    grants: Iterable[GrantLike],
    consumptions: Iterable[ConsumptionLike],
) -> list[PreviewRow]:
    """Add each eligible employee's carryover to their preview row."""
    if not policy.carryover_enabled or policy.accrual_method == AccrualMethod.MONTHLY:
        return rows
    grants_by_user: dict[uuid.UUID, list[GrantLike]] = defaultdict(list)
    for grant in grants:
        grants_by_user[grant.user_id].append(grant)
    consumptions_by_user: dict[uuid.UUID | None, list[ConsumptionLike]] = defaultdict(list)
    for consumption in consumptions:
        consumptions_by_user[consumption.user_id].append(consumption)

    out = []
    for row in rows:
        if not row.eligible:
            out.append(row)
            continue
        minutes = compute_carryover_minutes(
            policy, row.granted_on, grants_by_user[row.user_id], consumptions_by_user[row.user_id]
        )
        if minutes > 0:
            row = row.model_copy(
                update={"carryover_minutes": minutes, "quantity_minutes": row.quantity_minutes + minutes}
            )
        out.append(row)
    return out
