"""Attendance collaborator: monthly attendance summaries used for proration."""

# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class AttendanceSummary(BaseModel):
    """Attendance for one employee over one calendar month.

    ``workdays`` of 0 means the calendar has no data for the month; the
    calculator then falls back to counting Monday-Friday.
    """

    workdays: int = Field(default=0, ge=0)
    attended_days: float = Field(default=0, ge=0)
    worked_minutes: int = Field(default=0, ge=0)


@runtime_checkable
class AttendanceService(Protocol):
    """Interface for the attendance source."""

    async def get_monthly_summary(
        self, company_id: uuid.UUID, employee_id: uuid.UUID, year: int, month: int
    ) -> AttendanceSummary | None:
        """Return the employee's attendance for the month, or None if unknown."""
        ...


class InMemoryAttendanceService:
    """In-memory attendance source used in development and tests."""

    def __init__(self) -> None:
        self._summaries: dict[tuple[uuid.UUID, uuid.UUID, int, int], AttendanceSummary] = {}

    def seed(
        self, company_id: uuid.UUID, employee_id: uuid.UUID, year: int, month: int, summary: AttendanceSummary
    ) -> None:
        self._summaries[(company_id, employee_id, year, month)] = summary

    async def get_monthly_summary(
        self, company_id: uuid.UUID, employee_id: uuid.UUID, year: int, month: int
    ) -> AttendanceSummary | None:
        return self._summaries.get((company_id, employee_id, year, month))


_attendance_service: AttendanceService = InMemoryAttendanceService()


def get_attendance_service() -> AttendanceService:
    """FastAPI dependency for the attendance source."""
    return _attendance_service


def set_attendance_service(service: AttendanceService) -> None:
    """Override the attendance source (for testing or production wiring)."""
    global _attendance_service
    _attendance_service = service
