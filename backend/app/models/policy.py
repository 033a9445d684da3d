# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase
from app.models.enums import AccrualMethod, DeductionTiming


class LeavePolicy(UUIDBase, TimestampMixin, table=True):
    """Accrual and booking rules for one (company, leave type) pair.

    Rows are never deleted. An update deactivates the current row and inserts
    its successor, so at most one row per pair is active at a time.
    """

    __tablename__ = "leave_policy"
    __table_args__ = (
        sa.Index(
            "uq_leave_policy_active",
            "company_id",
            "leave_type_id",
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active = 1"),
        ),
    )

    company_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(index=True)
    accrual_method: str = Field(default=AccrualMethod.ANNIVERSARY, max_length=50)
    fiscal_start_month: int = 4
    day_hours: float = 8
    anniversary_offset_days: int = 0
    base_days_by_service: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    monthly_proration: bool = False
    monthly_proration_basis: str | None = Field(default=None, max_length=20)
    monthly_min_attendance_rate: float = 0
    carryover_enabled: bool = False
    carryover_max_days: float | None = None
    expire_months: int = 24
    allow_negative: bool = False
    min_booking_unit_minutes: int = 60
    rounding_minutes: int = 15
    hold_on_apply: bool = True
    deduction_timing: str = Field(default=DeductionTiming.APPROVE, max_length=20)
    business_day_only: bool = True
    blackout_dates: list[str] | None = Field(default=None, sa_type=sa.JSON)
    is_active: bool = Field(default=True, index=True)
    deleted_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    created_by: uuid.UUID
