# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel

from app.models.enums import GrantSource


class GrantBalanceResponse(BaseModel):
    """FIFO allocation result for a single grant."""

    grant_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    granted_on: date
    expires_on: date | None
    source: GrantSource
    quantity_minutes: int
    consumed_minutes: int
    remaining_minutes: int


class BalanceSummary(BaseModel):
    """Totals for one employee and leave type."""

    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    granted_minutes: int
    consumed_minutes: int
    remaining_minutes: int
    unallocated_minutes: int  # consumption that no grant could cover


class BalanceListResponse(BaseModel):
    """Per-grant balances plus per-employee totals."""

    items: list[GrantBalanceResponse]
    summaries: list[BalanceSummary]
    total: int
