"""Persistence boundary for grants, consumptions and policies, plus the roster and attendance collaborators.

Database failures surface as :class:`PersistenceError`. A duplicate grant
insert is not a failure: :func:`insert_grant` reports it as not inserted.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from app.exceptions import AppError, PersistenceError
from app.models.base import now_utc
from app.models.consumption import LeaveConsumption
from app.models.enums import ConsumptionStatus
from app.models.grant import LeaveGrant
from app.models.policy import LeavePolicy
from app.schemas.policy import LeavePolicySettings, normalize_base_days
from app.services.accrual import coerce_policy, previous_month
from app.services.attendance import get_attendance_service
from app.services.employee import get_employee_service

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql import Select

    from app.services.attendance import AttendanceSummary
    from app.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

_SETTINGS_FIELDS = tuple(LeavePolicySettings.model_fields)


async def _fetch_all(session: AsyncSession, stmt: Select[Any], what: str) -> list[Any]:
    try:
        result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        msg = f"Failed to load {what}"
        raise PersistenceError(msg) from exc
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Grants and consumptions
# ---------------------------------------------------------------------------


async def fetch_grants(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    user_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
    granted_on: date | None = None,
    source: str | None = None,
) -> list[LeaveGrant]:
    """Load grants ordered oldest first."""
    stmt = select(LeaveGrant).where(col(LeaveGrant.company_id) == company_id)
    if user_id is not None:
        stmt = stmt.where(col(LeaveGrant.user_id) == user_id)
    if leave_type_id is not None:
        stmt = stmt.where(col(LeaveGrant.leave_type_id) == leave_type_id)
    if granted_on is not None:
        stmt = stmt.where(col(LeaveGrant.granted_on) == granted_on)
    if source is not None:
        stmt = stmt.where(col(LeaveGrant.source) == source)
    stmt = stmt.order_by(col(LeaveGrant.granted_on), col(LeaveGrant.created_at))
    return await _fetch_all(session, stmt, "leave grants")


async def fetch_consumptions(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    user_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
) -> list[LeaveConsumption]:
    """Load consumptions that count against balances: not deleted and not cancelled."""
    stmt = select(LeaveConsumption).where(
        col(LeaveConsumption.company_id) == company_id,
        col(LeaveConsumption.deleted_at).is_(None),
        col(LeaveConsumption.status) != ConsumptionStatus.CANCELLED.value,
    )
    if user_id is not None:
        stmt = stmt.where(col(LeaveConsumption.user_id) == user_id)
    if leave_type_id is not None:
        stmt = stmt.where(col(LeaveConsumption.leave_type_id) == leave_type_id)
    return await _fetch_all(session, stmt, "leave consumptions")


async def insert_grant(session: AsyncSession, grant: LeaveGrant) -> bool:
    """Insert one grant in a savepoint. Returns False when the idempotency index rejects it."""
    try:
        async with session.begin_nested():
            session.add(grant)
            await session.flush()
    except IntegrityError:
        logger.debug(
            "Grant already exists for user=%s leave_type=%s on %s (%s)",
            grant.user_id,
            grant.leave_type_id,
            grant.granted_on,
            grant.source,
        )
        return False
    except SQLAlchemyError as exc:
        msg = "Failed to insert leave grant"
        raise PersistenceError(msg) from exc
    return True


async def commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        msg = "Failed to commit transaction"
        raise PersistenceError(msg) from exc


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


def policy_settings_from_row(row: LeavePolicy) -> LeavePolicySettings:
    """Validate a stored policy row. Raises ConfigurationError when it is malformed."""
    raw = {name: getattr(row, name) for name in _SETTINGS_FIELDS}
    raw["base_days_by_service"] = normalize_base_days(raw["base_days_by_service"])
    raw["blackout_dates"] = raw["blackout_dates"] or []
    return coerce_policy(raw)


def policy_row_values(settings: LeavePolicySettings) -> dict[str, Any]:
    return settings.model_dump(mode="json")


async def fetch_policy(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeavePolicy | None:
    """Return the active policy row for a leave type, if any."""
    rows = await _fetch_all(
        session,
        select(LeavePolicy).where(
            col(LeavePolicy.company_id) == company_id,
            col(LeavePolicy.leave_type_id) == leave_type_id,
            col(LeavePolicy.is_active).is_(True),
        ),
        "leave policy",
    )
    return rows[0] if rows else None


async def fetch_active_policies(session: AsyncSession, company_id: uuid.UUID | None = None) -> list[LeavePolicy]:
    """Active policies across all companies, or one company when given."""
    stmt = select(LeavePolicy).where(col(LeavePolicy.is_active).is_(True))
    if company_id is not None:
        stmt = stmt.where(col(LeavePolicy.company_id) == company_id)
    stmt = stmt.order_by(col(LeavePolicy.company_id), col(LeavePolicy.leave_type_id))
    return await _fetch_all(session, stmt, "leave policies")


async def upsert_policy(
    session: AsyncSession,
    *,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    settings: LeavePolicySettings,
    actor_id: uuid.UUID,
    current: LeavePolicy | None = None,
) -> LeavePolicy:
    """Supersede ``current`` (if any) with a new active row holding ``settings``."""
    new_row = LeavePolicy(
        company_id=company_id,
        leave_type_id=leave_type_id,
        created_by=actor_id,
        **policy_row_values(settings),
    )
    try:
        async with session.begin_nested():
            if current is not None:
                current.is_active = False
                current.deleted_at = now_utc()
                session.add(current)
                # The active-row index must see the old row deactivated first.
                await session.flush()
            session.add(new_row)
            await session.flush()
    except IntegrityError as exc:
        raise AppError("Leave policy was modified concurrently", status_code=409) from exc
    except SQLAlchemyError as exc:
        msg = "Failed to save leave policy"
        raise PersistenceError(msg) from exc
    return new_row


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


async def fetch_roster(company_id: uuid.UUID) -> list[EmployeeInfo]:
    """Current roster from the employee service."""
    return await get_employee_service().list_employees(company_id)


async def fetch_attendance(
    company_id: uuid.UUID,
    employees: Iterable[EmployeeInfo],
    grant_date: date,
) -> dict[uuid.UUID, AttendanceSummary | None]:
    """Attendance for the month before ``grant_date``, keyed by employee id."""
    period_start, _ = previous_month(grant_date)
    service = get_attendance_service()
    return {
        employee.id: await service.get_monthly_summary(
            company_id, employee.id, period_start.year, period_start.month
        )
        for employee in employees
    }
