# ruff: noqa: TC003
"""Roster and attendance stub endpoints for development wiring."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Path, status

from app.api.deps import AdminDep, AuthDep, validate_company_scope
from app.exceptions import AppError
from app.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from app.services.attendance import AttendanceSummary, get_attendance_service
from app.services.employee import EmployeeInfo, get_employee_service

employees_router = APIRouter(
    prefix="/companies/{company_id}/employees",
    tags=["employees"],
    dependencies=[Depends(validate_company_scope)],
)


def _to_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        company_id=employee.company_id,
        first_name=employee.first_name,
        last_name=employee.last_name,
        email=employee.email,
        hire_date=employee.hire_date,
    )


@employees_router.put("/{employee_id}", response_model=EmployeeResponse)
async def upsert_employee(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    auth: AdminDep,
) -> EmployeeResponse:
    """Create or update a roster entry in the stub service (admin only)."""
    employee = EmployeeInfo(id=employee_id, company_id=company_id, **payload.model_dump())
    get_employee_service().seed(employee)  # ty: ignore[unresolved-attribute]
    return _to_response(employee)


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    auth: AuthDep,
) -> EmployeeResponse:
    """Get one roster entry."""
    employee = await get_employee_service().get_employee(company_id, employee_id)
    if employee is None:
        raise AppError("Employee not found", status_code=status.HTTP_404_NOT_FOUND)
    return _to_response(employee)


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(
    company_id: uuid.UUID,
    auth: AuthDep,
) -> EmployeeListResponse:
    """List the company roster."""
    items = [_to_response(e) for e in await get_employee_service().list_employees(company_id)]
    return EmployeeListResponse(items=items, total=len(items))


@employees_router.put(
    "/{employee_id}/attendance/{year}/{month}",
    response_model=AttendanceSummary,
)
async def upsert_attendance(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    payload: AttendanceSummary,
    auth: AdminDep,
    year: int = Path(ge=1900, le=9999),
    month: int = Path(ge=1, le=12),
) -> AttendanceSummary:
    """Record a monthly attendance summary in the stub service (admin only)."""
    get_attendance_service().seed(company_id, employee_id, year, month, payload)  # ty: ignore[unresolved-attribute]
    return payload
