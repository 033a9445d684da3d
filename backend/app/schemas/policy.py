# ruff: noqa: TC003
from __future__ import annotations

import re
import uuid
from datetime import date, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from app.models.enums import AccrualMethod, DeductionTiming, ProrationBasis, ServiceUnit

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Nesting depth of the base-days table for each unit: year -> month -> day.
_UNIT_DEPTH = {ServiceUnit.YEAR: 1, ServiceUnit.MONTH: 2, ServiceUnit.DAY: 3}


def _stringify_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _stringify_keys(v) for k, v in value.items()}
    return value


def normalize_base_days(raw: Any) -> Any:
    """Return the tagged ``{"unit", "data"}`` form of a stored table; a bare mapping is a years table."""
    if raw is None:
        return {"unit": ServiceUnit.YEAR.value, "data": {}}
    if isinstance(raw, BaseDaysByService):
        return raw
    if isinstance(raw, dict) and set(raw) == {"unit", "data"}:
        return dict(raw)
    return {"unit": ServiceUnit.YEAR.value, "data": raw}


# ---------------------------------------------------------------------------
# Settings sub-schemas
# ---------------------------------------------------------------------------


class BaseDaysByService(BaseModel):
    """Full-day entitlement keyed by service duration.

    ``data`` is nested one level per unit: ``{"1": 11}`` for years,
    ``{"0": {"6": 10}}`` for years+months, and a third level for days.
    """

    model_config = ConfigDict(frozen=True)

    unit: ServiceUnit = ServiceUnit.YEAR
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def _normalize_keys(cls, v: Any) -> Any:
        return _stringify_keys(v)

    @model_validator(mode="after")
    def _validate_shape(self) -> Self:
        self._check_level(self.data, _UNIT_DEPTH[self.unit], path=[])
        return self

    @classmethod
    def _check_level(cls, node: dict[str, Any], depth: int, path: list[str]) -> None:
        for key, value in node.items():
            where = ".".join([*path, key])
            if not key.isdigit():
                msg = f"base_days_by_service key {where!r} must be a non-negative integer"
                raise ValueError(msg)
            if depth > 1:
                if not isinstance(value, dict):
                    msg = f"base_days_by_service entry {where!r} must be a mapping"
                    raise ValueError(msg)
                cls._check_level(value, depth - 1, [*path, key])
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                msg = f"base_days_by_service value at {where!r} must be a number"
                raise ValueError(msg)
            if value < 0:
                msg = f"base_days_by_service value at {where!r} must be non-negative"
                raise ValueError(msg)

    def lookup(self, years: int, months: int = 0, days: int = 0) -> float | None:
        """Return the exact entry for a service duration, or None when unset.

        Less specific entries are never used as a fallback.
        """
        keys = [years, months, days][: _UNIT_DEPTH[self.unit]]
        node: Any = self.data
        for key in keys:
            if not isinstance(node, dict) or str(key) not in node:
                return None
            node = node[str(key)]
        if isinstance(node, bool) or not isinstance(node, (int, float)):
            return None
        return float(node)


class LeavePolicySettings(BaseModel):
    """Validated, immutable accrual and booking rules of a leave policy."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    accrual_method: AccrualMethod = AccrualMethod.ANNIVERSARY
    fiscal_start_month: int = Field(default=4, ge=1, le=12)
    day_hours: float = Field(default=8, gt=0, le=24)
    anniversary_offset_days: int = Field(default=0, ge=-366, le=366)
    base_days_by_service: BaseDaysByService = Field(default_factory=BaseDaysByService)
    monthly_proration: bool = False
    monthly_proration_basis: ProrationBasis | None = Field(default=None, validate_default=True)
    monthly_min_attendance_rate: float = Field(default=0, ge=0, le=1)
    carryover_enabled: bool = False
    carryover_max_days: float | None = Field(default=None, ge=0, description="None means unlimited")
    expire_months: int = Field(default=24, ge=0, le=120, description="0 means grants never expire")
    allow_negative: bool = False
    min_booking_unit_minutes: int = Field(default=60, ge=1, le=1440)
    rounding_minutes: int = Field(default=15, ge=0, le=120)
    hold_on_apply: bool = True
    deduction_timing: DeductionTiming = DeductionTiming.APPROVE
    business_day_only: bool = True
    blackout_dates: tuple[str, ...] = ()

    @field_validator("monthly_proration_basis")
    @classmethod
    def _basis_required_with_proration(cls, v: ProrationBasis | None, info: ValidationInfo) -> ProrationBasis | None:
        if v is None and info.data.get("monthly_proration"):
            msg = "monthly_proration_basis is required when monthly_proration is enabled"
            raise ValueError(msg)
        return v

    @field_validator("blackout_dates")
    @classmethod
    def _validate_blackout_dates(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for value in v:
            if not _ISO_DATE_RE.match(value):
                msg = f"blackout date {value!r} must be formatted YYYY-MM-DD"
                raise ValueError(msg)
            try:
                date.fromisoformat(value)
            except ValueError:
                msg = f"blackout date {value!r} is not a calendar date"
                raise ValueError(msg) from None
        return v

    @property
    def carryover_cap_minutes(self) -> int | None:
        """Carryover cap in minutes, or None when unlimited."""
        if self.carryover_max_days is None:
            return None
        return int(self.carryover_max_days * self.day_hours * 60)


# ---------------------------------------------------------------------------
# API request / response schemas
# ---------------------------------------------------------------------------


class LeavePolicyResponse(BaseModel):
    """Response schema for the active policy of a leave type."""

    id: uuid.UUID
    company_id: uuid.UUID
    leave_type_id: uuid.UUID
    is_active: bool
    settings: LeavePolicySettings
    created_by: uuid.UUID
    created_at: datetime
