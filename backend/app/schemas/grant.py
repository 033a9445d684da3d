# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from app.models.enums import AccrualMethod, GrantSource

# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


class PreviewRow(BaseModel):
    """Per-employee result of a policy grant computation. Never persisted."""

    user_id: uuid.UUID
    leave_type_id: uuid.UUID | None = None
    granted_on: date
    eligible: bool
    service_years: int = 0
    base_days: float = 0
    carryover_minutes: int = 0
    quantity_minutes: int = 0
    duplicate: bool = False
    reason: str | None = None

    @property
    def committable(self) -> bool:
        """Whether commit should insert a grant for this row."""
        return self.eligible and self.quantity_minutes > 0 and not self.duplicate


class GrantPreviewResponse(BaseModel):
    """Dry-run result of a policy grant for one leave type and date."""

    leave_type_id: uuid.UUID
    grant_date: date
    accrual_method: AccrualMethod
    items: list[PreviewRow]
    total: int
    committable: int
    duplicates: int


class GrantRunResponse(BaseModel):
    """Outcome of committing a policy grant."""

    leave_type_id: uuid.UUID
    grant_date: date
    granted: int
    skipped: int


# ---------------------------------------------------------------------------
# Manual grants
# ---------------------------------------------------------------------------


# Upper bound of the INTEGER quantity column.
MAX_QUANTITY_MINUTES = 2_147_483_647


class CreateManualGrantRequest(BaseModel):
    """Request body for an administrator-entered grant."""

    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    quantity_minutes: int = Field(ge=0, le=MAX_QUANTITY_MINUTES)
    granted_on: date
    expires_on: date | None = None
    note: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.expires_on is not None and self.expires_on < self.granted_on:
            msg = "expires_on must be >= granted_on"
            raise ValueError(msg)
        return self


class GrantResponse(BaseModel):
    """Response schema for a persisted grant."""

    id: uuid.UUID
    company_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    quantity_minutes: int
    granted_on: date
    expires_on: date | None
    source: GrantSource
    note: str | None
    created_at: datetime


# ---------------------------------------------------------------------------
# CSV ingestion
# ---------------------------------------------------------------------------


class CsvImportResponse(BaseModel):
    """Counts reported by a CSV grant import."""

    inserted: int
    skipped: int
    error_rows: int
