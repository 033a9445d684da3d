# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the roster stub."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    hire_date: date | None = None


class EmployeeResponse(BaseModel):
    """Response schema for a roster entry."""

    id: uuid.UUID
    company_id: uuid.UUID
    first_name: str
    last_name: str
    email: str | None
    hire_date: date | str | None


class EmployeeListResponse(BaseModel):
    """List of roster entries."""

    items: list[EmployeeResponse]
    total: int
