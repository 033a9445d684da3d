"""leave ledger schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "leave_policy",
        _id(),
        _created_at(),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), nullable=False),
        sa.Column("accrual_method", sa.String(length=50), nullable=False),
        sa.Column("fiscal_start_month", sa.Integer(), nullable=False),
        sa.Column("day_hours", sa.Float(), nullable=False),
        sa.Column("anniversary_offset_days", sa.Integer(), nullable=False),
        sa.Column("base_days_by_service", sa.JSON(), nullable=True),
        sa.Column("monthly_proration", sa.Boolean(), nullable=False),
        sa.Column("monthly_proration_basis", sa.String(length=20), nullable=True),
        sa.Column("monthly_min_attendance_rate", sa.Float(), nullable=False),
        sa.Column("carryover_enabled", sa.Boolean(), nullable=False),
        sa.Column("carryover_max_days", sa.Float(), nullable=True),
        sa.Column("expire_months", sa.Integer(), nullable=False),
        sa.Column("allow_negative", sa.Boolean(), nullable=False),
        sa.Column("min_booking_unit_minutes", sa.Integer(), nullable=False),
        sa.Column("rounding_minutes", sa.Integer(), nullable=False),
        sa.Column("hold_on_apply", sa.Boolean(), nullable=False),
        sa.Column("deduction_timing", sa.String(length=20), nullable=False),
        sa.Column("business_day_only", sa.Boolean(), nullable=False),
        sa.Column("blackout_dates", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
    )
    op.create_index("ix_leave_policy_company_id", "leave_policy", ["company_id"])
    op.create_index("ix_leave_policy_leave_type_id", "leave_policy", ["leave_type_id"])
    op.create_index("ix_leave_policy_is_active", "leave_policy", ["is_active"])
    op.create_index(
        "uq_leave_policy_active",
        "leave_policy",
        ["company_id", "leave_type_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "leave_grant",
        _id(),
        _created_at(),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), nullable=False),
        sa.Column("quantity_minutes", sa.Integer(), nullable=False),
        sa.Column("granted_on", sa.Date(), nullable=False),
        sa.Column("expires_on", sa.Date(), nullable=True),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.CheckConstraint("quantity_minutes >= 0", name="ck_leave_grant_quantity_non_negative"),
    )
    op.create_index("ix_leave_grant_company_id", "leave_grant", ["company_id"])
    op.create_index("ix_leave_grant_user_id", "leave_grant", ["user_id"])
    op.create_index("ix_leave_grant_user_type", "leave_grant", ["user_id", "leave_type_id"])
    op.create_index(
        "uq_leave_grant_idempotency",
        "leave_grant",
        ["company_id", "user_id", "leave_type_id", "granted_on", "source"],
        unique=True,
        postgresql_where=sa.text("source <> 'manual'"),
    )

    op.create_table(
        "leave_consumption",
        _id(),
        _created_at(),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=True),
        sa.Column("quantity_minutes", sa.Integer(), nullable=False),
        sa.Column("consumed_on", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_leave_consumption_company_id", "leave_consumption", ["company_id"])
    op.create_index("ix_leave_consumption_user_id", "leave_consumption", ["user_id"])
    op.create_index("ix_leave_consumption_user_type", "leave_consumption", ["user_id", "leave_type_id"])

    op.create_table(
        "audit_log",
        _id(),
        _created_at(),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("details_json", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_log_company_id", "audit_log", ["company_id"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("leave_consumption")
    op.drop_table("leave_grant")
    op.drop_table("leave_policy")
