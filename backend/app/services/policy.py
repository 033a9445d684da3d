# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from fastapi import status
from pydantic import ValidationError

from app.exceptions import AppError, PolicyValidationError
from app.models.enums import AuditAction, AuditEntityType
from app.schemas.policy import LeavePolicyResponse, LeavePolicySettings, normalize_base_days
from app.services import repository
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.models.policy import LeavePolicy
    from app.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


def _build_policy_response(row: LeavePolicy, settings: LeavePolicySettings) -> LeavePolicyResponse:
    return LeavePolicyResponse(
        id=row.id,
        company_id=row.company_id,
        leave_type_id=row.leave_type_id,
        is_active=row.is_active,
        settings=settings,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _field_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "__root__"
        errors.setdefault(field, err["msg"])
    return errors


def merge_policy_patch(
    current: LeavePolicySettings | None,
    patch: Mapping[str, Any],
) -> LeavePolicySettings:
    """Apply ``patch`` over ``current`` (or the defaults) and validate the result.

    Raises PolicyValidationError with one message per offending field.
    """
    unknown = {key: "Unknown policy field" for key in patch if key not in LeavePolicySettings.model_fields}
    if unknown:
        raise PolicyValidationError(unknown)

    merged: dict[str, Any] = current.model_dump() if current is not None else {}
    merged.update(patch)
    if "base_days_by_service" in patch:
        merged["base_days_by_service"] = normalize_base_days(patch["base_days_by_service"])
    try:
        return LeavePolicySettings.model_validate(merged)
    except ValidationError as exc:
        raise PolicyValidationError(_field_errors(exc)) from exc


async def get_policy(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeavePolicyResponse:
    """Return the active policy for a leave type."""
    row = await repository.fetch_policy(session, company_id, leave_type_id)
    if row is None:
        raise AppError("Leave policy not found", status_code=status.HTTP_404_NOT_FOUND)
    return _build_policy_response(row, repository.policy_settings_from_row(row))


async def update_policy(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    patch: Mapping[str, Any],
) -> LeavePolicyResponse:
    """Merge a partial update into the active policy and store it as the new active row.

    Validation happens before anything is written; on failure the stored
    policy is left untouched.
    """
    current_row = await repository.fetch_policy(session, auth.company_id, leave_type_id)
    current = repository.policy_settings_from_row(current_row) if current_row is not None else None
    settings = merge_policy_patch(current, patch)

    before = model_to_audit_dict(current_row) if current_row is not None else None
    new_row = await repository.upsert_policy(
        session,
        company_id=auth.company_id,
        leave_type_id=leave_type_id,
        settings=settings,
        actor_id=auth.user_id,
        current=current_row,
    )
    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=new_row.id,
        action=AuditAction.UPDATE if current_row is not None else AuditAction.CREATE,
        before_json=before,
        after_json=model_to_audit_dict(new_row),
        details={"leave_type_id": leave_type_id, "fields": sorted(patch)},
    )
    await repository.commit(session)
    logger.info("Leave policy for leave_type=%s updated by %s", leave_type_id, auth.user_id)
    return _build_policy_response(new_row, settings)
