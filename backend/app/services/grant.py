"""Grant service: preview, duplicate guard, commit and manual grants."""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from fastapi import status

from app.exceptions import AppError
from app.models.enums import AccrualMethod, AuditAction, AuditEntityType, GrantSource
from app.models.grant import LeaveGrant
from app.schemas.grant import GrantPreviewResponse, GrantResponse, PreviewRow
from app.schemas.policy import LeavePolicySettings
from app.services import repository
from app.services.accrual import coerce_policy, compute_expires_on, compute_grants
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.carryover import apply_carryover, carryover_note

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.grant import CreateManualGrantRequest

logger = logging.getLogger(__name__)

REASON_DUPLICATE = "already granted on this date"


@dataclass
class GrantRunResult:
    """Summary of a committed policy grant."""

    leave_type_id: uuid.UUID
    grant_date: date
    granted: int = 0
    skipped: int = 0


# ---------------------------------------------------------------------------
# Duplicate guard (pure)
# ---------------------------------------------------------------------------


def detect_duplicates(rows: Iterable[PreviewRow], existing_grants: Iterable[Any]) -> list[PreviewRow]:
    """Flag rows whose (user, leave type, date) already has a policy grant.

    Grants from other sources never block a policy grant. An existing
    reason on a row is kept.
    """
    taken = {
        (g.user_id, g.leave_type_id, g.granted_on) for g in existing_grants if g.source == GrantSource.POLICY
    }
    out = []
    for row in rows:
        if (row.user_id, row.leave_type_id, row.granted_on) in taken:
            row = row.model_copy(update={"duplicate": True, "reason": row.reason or REASON_DUPLICATE})
        out.append(row)
    return out


# ---------------------------------------------------------------------------
# Preview / commit
# ---------------------------------------------------------------------------


async def _load_policy_settings(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeavePolicySettings:
    row = await repository.fetch_policy(session, company_id, leave_type_id)
    if row is None:
        raise AppError("No active leave policy for this leave type", status_code=status.HTTP_404_NOT_FOUND)
    return repository.policy_settings_from_row(row)


async def build_preview(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    grant_date: date,
    *,
    policy: LeavePolicySettings | None = None,
) -> tuple[LeavePolicySettings, list[PreviewRow]]:
    """Compute rows for every rostered employee, with carryover and duplicate flags."""
    settings = policy or await _load_policy_settings(session, company_id, leave_type_id)
    roster = await repository.fetch_roster(company_id)
    attendance = None
    if settings.accrual_method == AccrualMethod.MONTHLY and settings.monthly_proration:
        attendance = await repository.fetch_attendance(company_id, roster, grant_date)

    rows = compute_grants(settings, grant_date, roster, attendance, leave_type_id=leave_type_id)
    grants = await repository.fetch_grants(session, company_id, leave_type_id=leave_type_id)
    if settings.carryover_enabled:
        consumptions = await repository.fetch_consumptions(session, company_id, leave_type_id=leave_type_id)
        rows = apply_carryover(settings, rows, grants, consumptions)
    return settings, detect_duplicates(rows, grants)


async def preview_grant(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    grant_date: date,
) -> GrantPreviewResponse:
    """Dry run: what a grant on ``grant_date`` would do. Writes nothing."""
    settings, rows = await build_preview(session, company_id, leave_type_id, grant_date)
    return GrantPreviewResponse(
        leave_type_id=leave_type_id,
        grant_date=grant_date,
        accrual_method=settings.accrual_method,
        items=rows,
        total=len(rows),
        committable=sum(1 for r in rows if r.committable),
        duplicates=sum(1 for r in rows if r.duplicate),
    )


async def commit_grants(
    session: AsyncSession,
    rows: Iterable[PreviewRow],
    policy: LeavePolicySettings | Mapping[str, Any],
    grant_date: date,
    *,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    actor_id: uuid.UUID,
) -> GrantRunResult:
    """Persist committable rows as policy grants.

    The duplicate guard runs again against freshly loaded grants, and each
    insert is individually idempotent, so repeating a commit is harmless.
    Every row that is not inserted counts as skipped.
    """
    settings = coerce_policy(policy)
    rows = [r if r.leave_type_id is not None else r.model_copy(update={"leave_type_id": leave_type_id}) for r in rows]
    existing = await repository.fetch_grants(
        session, company_id, leave_type_id=leave_type_id, granted_on=grant_date, source=GrantSource.POLICY
    )
    rows = detect_duplicates(rows, existing)

    result = GrantRunResult(leave_type_id=leave_type_id, grant_date=grant_date)
    for row in rows:
        if not row.committable:
            result.skipped += 1
            continue
        grant = LeaveGrant(
            company_id=company_id,
            user_id=row.user_id,
            leave_type_id=row.leave_type_id,
            quantity_minutes=row.quantity_minutes,
            granted_on=row.granted_on,
            expires_on=compute_expires_on(settings, row.granted_on),
            source=GrantSource.POLICY.value,
            note=carryover_note(row.carryover_minutes) if row.carryover_minutes > 0 else None,
            created_by=actor_id,
        )
        if await repository.insert_grant(session, grant):
            result.granted += 1
        else:
            result.skipped += 1

    await write_audit_log(
        session,
        company_id=company_id,
        actor_id=actor_id,
        entity_type=AuditEntityType.GRANT_RUN,
        action=AuditAction.RUN,
        details={
            "leave_type_id": leave_type_id,
            "grant_date": grant_date,
            "granted": result.granted,
            "skipped": result.skipped,
        },
    )
    await repository.commit(session)
    logger.info(
        "Grant run for leave_type=%s on %s: granted=%d skipped=%d",
        leave_type_id,
        grant_date,
        result.granted,
        result.skipped,
    )
    return result


async def run_grant(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    grant_date: date,
    actor_id: uuid.UUID,
) -> GrantRunResult:
    """Preview and commit in one step."""
    settings, rows = await build_preview(session, company_id, leave_type_id, grant_date)
    return await commit_grants(
        session,
        rows,
        settings,
        grant_date,
        company_id=company_id,
        leave_type_id=leave_type_id,
        actor_id=actor_id,
    )


# ---------------------------------------------------------------------------
# Manual grants and listing
# ---------------------------------------------------------------------------


def _build_grant_response(grant: LeaveGrant) -> GrantResponse:
    return GrantResponse(
        id=grant.id,
        company_id=grant.company_id,
        user_id=grant.user_id,
        leave_type_id=grant.leave_type_id,
        quantity_minutes=grant.quantity_minutes,
        granted_on=grant.granted_on,
        expires_on=grant.expires_on,
        source=GrantSource(grant.source),
        note=grant.note,
        created_at=grant.created_at,
    )


async def create_manual_grant(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateManualGrantRequest,
) -> GrantResponse:
    """Record an administrator-entered grant.

    Manual grants are never treated as duplicates. Without an explicit
    expiry the active policy's expiry rule applies, if there is one.
    """
    expires_on = payload.expires_on
    if expires_on is None:
        policy_row = await repository.fetch_policy(session, auth.company_id, payload.leave_type_id)
        if policy_row is not None:
            expires_on = compute_expires_on(repository.policy_settings_from_row(policy_row), payload.granted_on)

    grant = LeaveGrant(
        company_id=auth.company_id,
        user_id=payload.user_id,
        leave_type_id=payload.leave_type_id,
        quantity_minutes=payload.quantity_minutes,
        granted_on=payload.granted_on,
        expires_on=expires_on,
        source=GrantSource.MANUAL.value,
        note=payload.note,
        created_by=auth.user_id,
    )
    if not await repository.insert_grant(session, grant):
        raise AppError("Grant could not be recorded", status_code=status.HTTP_409_CONFLICT)

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.GRANT,
        entity_id=grant.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(grant),
    )
    await repository.commit(session)
    return _build_grant_response(grant)


async def list_grants(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    user_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
) -> list[GrantResponse]:
    grants = await repository.fetch_grants(session, company_id, user_id=user_id, leave_type_id=leave_type_id)
    return [_build_grant_response(g) for g in grants]
