# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends

from app.api.deps import AdminDep, AuthDep, validate_company_scope
from app.db import SessionDep
from app.schemas.policy import LeavePolicyResponse
from app.services import policy as policy_service

router = APIRouter(
    prefix="/companies/{company_id}/leave-types/{leave_type_id}/policy",
    tags=["policies"],
    dependencies=[Depends(validate_company_scope)],
)


@router.get("", response_model=LeavePolicyResponse)
async def get_policy(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeavePolicyResponse:
    """Get the active policy of a leave type."""
    return await policy_service.get_policy(session, auth.company_id, leave_type_id)


@router.patch("", response_model=LeavePolicyResponse)
async def update_policy(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    patch: dict[str, Any] = Body(),
) -> LeavePolicyResponse:
    """Partially update the policy (admin only).

    The merged policy is validated as a whole; any invalid field rejects the
    update with a 422 listing every offending field.
    """
    return await policy_service.update_policy(session, auth, leave_type_id, patch)
