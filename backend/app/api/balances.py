# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from app.api.deps import AuthDep, scoped_user_id, validate_company_scope
from app.db import SessionDep
from app.schemas.balance import BalanceListResponse
from app.services.balance import get_balances

balances_router = APIRouter(
    prefix="/companies/{company_id}/balances",
    tags=["balances"],
    dependencies=[Depends(validate_company_scope)],
)


@balances_router.get("", response_model=BalanceListResponse)
async def list_balances(
    session: SessionDep,
    auth: AuthDep,
    user_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
) -> BalanceListResponse:
    """Per-grant remaining minutes after FIFO allocation. Non-admins only see their own."""
    return await get_balances(
        session, auth.company_id, user_id=scoped_user_id(auth, user_id), leave_type_id=leave_type_id
    )
