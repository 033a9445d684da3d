# ruff: noqa: B008, TC001, TC003
"""API endpoints for policy grant runs, manual grants and CSV transfer."""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import PlainTextResponse

from app.api.deps import AdminDep, AuthDep, scoped_user_id, validate_company_scope
from app.db import SessionDep
from app.exceptions import AppError
from app.schemas.grant import (
    CreateManualGrantRequest,
    CsvImportResponse,
    GrantPreviewResponse,
    GrantResponse,
    GrantRunResponse,
)
from app.services import grant as grant_service
from app.services import grant_csv

_CSV_MEDIA_TYPE = "text/csv; charset=utf-8"

# ---------------------------------------------------------------------------
# Policy grant runs: /companies/{company_id}/leave-types/{leave_type_id}/grants
# ---------------------------------------------------------------------------

policy_grants_router = APIRouter(
    prefix="/companies/{company_id}/leave-types/{leave_type_id}/grants",
    tags=["grants"],
    dependencies=[Depends(validate_company_scope)],
)


@policy_grants_router.post("/preview", response_model=GrantPreviewResponse)
async def preview_grant(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    grant_date: date = Query(),
) -> GrantPreviewResponse:
    """Dry-run a policy grant for ``grant_date`` (admin only). Nothing is written."""
    return await grant_service.preview_grant(session, auth.company_id, leave_type_id, grant_date)


@policy_grants_router.post("/run", response_model=GrantRunResponse)
async def run_grant(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    grant_date: date = Query(),
) -> GrantRunResponse:
    """Grant leave per policy for ``grant_date`` (admin only). Safe to repeat."""
    result = await grant_service.run_grant(session, auth.company_id, leave_type_id, grant_date, auth.user_id)
    return GrantRunResponse(
        leave_type_id=result.leave_type_id,
        grant_date=result.grant_date,
        granted=result.granted,
        skipped=result.skipped,
    )


# ---------------------------------------------------------------------------
# Grants: /companies/{company_id}/grants
# ---------------------------------------------------------------------------

grants_router = APIRouter(
    prefix="/companies/{company_id}/grants",
    tags=["grants"],
    dependencies=[Depends(validate_company_scope)],
)


@grants_router.post("", response_model=GrantResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_grant(
    payload: CreateManualGrantRequest,
    session: SessionDep,
    auth: AdminDep,
) -> GrantResponse:
    """Record a manual grant (admin only)."""
    return await grant_service.create_manual_grant(session, auth, payload)


@grants_router.get("", response_model=list[GrantResponse])
async def list_grants(
    session: SessionDep,
    auth: AuthDep,
    user_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
) -> list[GrantResponse]:
    """List grants. Non-admins only see their own."""
    return await grant_service.list_grants(
        session, auth.company_id, user_id=scoped_user_id(auth, user_id), leave_type_id=leave_type_id
    )


@grants_router.post("/import", response_model=CsvImportResponse)
async def import_grants(
    request: Request,
    session: SessionDep,
    auth: AdminDep,
) -> CsvImportResponse:
    """Import grants from a CSV request body (admin only)."""
    body = await request.body()
    try:
        text = body.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise AppError("CSV body must be UTF-8 encoded", status_code=status.HTTP_400_BAD_REQUEST) from exc
    result = await grant_csv.import_grants_csv(session, auth.company_id, text, auth.user_id)
    return CsvImportResponse(inserted=result.inserted, skipped=result.skipped, error_rows=result.error_rows)


@grants_router.get("/export", response_class=PlainTextResponse)
async def export_grants(
    session: SessionDep,
    auth: AdminDep,
    user_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
) -> PlainTextResponse:
    """Export grants as CSV in the import format (admin only)."""
    content = await grant_csv.export_grants_csv(
        session, auth.company_id, user_id=user_id, leave_type_id=leave_type_id
    )
    return PlainTextResponse(
        content,
        media_type=_CSV_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="leave_grants.csv"'},
    )


@grants_router.get("/template", response_class=PlainTextResponse)
async def grants_template(auth: AuthDep) -> PlainTextResponse:
    """Download the CSV import template."""
    return PlainTextResponse(
        grant_csv.grants_csv_template(),
        media_type=_CSV_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="leave_grants_template.csv"'},
    )
