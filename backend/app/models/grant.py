# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase


class LeaveGrant(UUIDBase, TimestampMixin, table=True):
    """Leave minutes given to one employee for one leave type on one date."""

    __tablename__ = "leave_grant"
    __table_args__ = (
        sa.Index("ix_leave_grant_user_type", "user_id", "leave_type_id"),
        sa.CheckConstraint("quantity_minutes >= 0", name="ck_leave_grant_quantity_non_negative"),
        # Manual corrections may repeat on the same day; policy and CSV grants may not.
        sa.Index(
            "uq_leave_grant_idempotency",
            "company_id",
            "user_id",
            "leave_type_id",
            "granted_on",
            "source",
            unique=True,
            postgresql_where=sa.text("source <> 'manual'"),
            sqlite_where=sa.text("source <> 'manual'"),
        ),
    )

    company_id: uuid.UUID = Field(index=True)
    user_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID
    quantity_minutes: int = Field(ge=0)
    granted_on: date
    expires_on: date | None = None
    source: str = Field(max_length=20)
    note: str | None = None
    created_by: uuid.UUID | None = None
