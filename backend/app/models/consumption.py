# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase
from app.models.enums import ConsumptionStatus


class LeaveConsumption(UUIDBase, TimestampMixin, table=True):
    """Leave minutes used by an employee. Written by the request workflow, read here."""

    __tablename__ = "leave_consumption"
    __table_args__ = (sa.Index("ix_leave_consumption_user_type", "user_id", "leave_type_id"),)

    company_id: uuid.UUID = Field(index=True)
    user_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID
    request_id: uuid.UUID | None = None
    quantity_minutes: int
    consumed_on: date | None = None
    status: str = Field(default=ConsumptionStatus.APPROVED, max_length=20)
    start_date: date | None = None
    end_date: date | None = None
    deleted_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
