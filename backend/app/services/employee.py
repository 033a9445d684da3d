"""Roster collaborator: the source of employees and their hire dates."""

# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class EmployeeInfo(BaseModel):
    """Roster entry as supplied by the HR system.

    ``hire_date`` is kept as delivered; the accrual calculator reports a
    missing or unparsable value on the affected row instead of failing.
    """

    id: uuid.UUID
    company_id: uuid.UUID
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    hire_date: date | str | None = None


@runtime_checkable
class EmployeeService(Protocol):
    """Interface for the roster source."""

    async def get_employee(self, company_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch one roster entry. Returns None if not found."""
        ...

    async def list_employees(self, company_id: uuid.UUID) -> list[EmployeeInfo]:
        """List the company's roster."""
        ...


class InMemoryEmployeeService:
    """In-memory roster used in development and tests."""

    def __init__(self) -> None:
        self._employees: dict[tuple[uuid.UUID, uuid.UUID], EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Add or replace a roster entry."""
        self._employees[(employee.company_id, employee.id)] = employee

    async def get_employee(self, company_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        return self._employees.get((company_id, employee_id))

    async def list_employees(self, company_id: uuid.UUID) -> list[EmployeeInfo]:
        return [e for e in self._employees.values() if e.company_id == company_id]


_employee_service: EmployeeService = InMemoryEmployeeService()


def get_employee_service() -> EmployeeService:
    """FastAPI dependency for the roster source."""
    return _employee_service


def set_employee_service(service: EmployeeService) -> None:
    """Override the roster source (for testing or production wiring)."""
    global _employee_service
    _employee_service = service
