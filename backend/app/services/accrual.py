"""Accrual calculator: eligibility and grant sizing for anniversary, fiscal and monthly policies.

Everything in this module is pure: the grant service loads the policy, the
roster and attendance, then hands them to :func:`compute_grants`.
"""

from __future__ import annotations

import logging
from calendar import monthrange
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from app.exceptions import ConfigurationError
from app.models.enums import AccrualMethod, ProrationBasis, ServiceUnit
from app.schemas.grant import PreviewRow
from app.schemas.policy import LeavePolicySettings, normalize_base_days

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from app.services.attendance import AttendanceSummary
    from app.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

REASON_NO_HIRE_DATE = "no hire date"
REASON_INVALID_HIRE_DATE = "invalid hire date"
REASON_NOT_YET_HIRED = "not yet hired"
REASON_NOT_ANNIVERSARY = "not an anniversary grant date"
REASON_NOT_FISCAL_START = "not the fiscal grant date"
REASON_NOT_MONTH_START = "not a monthly grant date"
REASON_NO_BASE_DAYS = "no base-day entry for this service year"
REASON_LOW_ATTENDANCE = "attendance below minimum"
REASON_ZERO_AMOUNT = "computed amount is zero"

# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def add_months(d: date, months: int) -> date:
    """Shift ``d`` by whole months, clamping the day to the target month's length."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    _, days_in_month = monthrange(year, month)
    return date(year, month, min(d.day, days_in_month))


def add_years(d: date, years: int) -> date:
    """Shift ``d`` by whole years. Feb 29 lands on Feb 28 in non-leap years."""
    return add_months(d, years * 12)


@dataclass(frozen=True)
class ServiceDuration:
    """Elapsed service as whole years, remaining months, remaining days."""

    years: int
    months: int
    days: int


def service_duration(start: date, end: date) -> ServiceDuration:
    """Elapsed calendar duration from ``start`` to ``end`` (``end >= start``)."""
    total_months = (end.year - start.year) * 12 + (end.month - start.month)
    if add_months(start, total_months) > end:
        total_months -= 1
    anchor = add_months(start, total_months)
    return ServiceDuration(total_months // 12, total_months % 12, (end - anchor).days)


def previous_month(d: date) -> tuple[date, date]:
    """Return the first and last day of the month before ``d``."""
    last = d.replace(day=1) - timedelta(days=1)
    return last.replace(day=1), last


def count_weekdays(start: date, end: date) -> int:
    """Count Monday-Friday days in the inclusive range."""
    if end < start:
        return 0
    total_days = (end - start).days + 1
    full_weeks, extra = divmod(total_days, 7)
    count = full_weeks * 5
    for offset in range(extra):
        if (start + timedelta(days=full_weeks * 7 + offset)).weekday() < 5:
            count += 1
    return count


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(repr(value)).to_integral_value(rounding=ROUND_HALF_UP))


def days_to_minutes(days: float, day_hours: float) -> int:
    return round_half_up(days * day_hours * 60)


def compute_expires_on(policy: LeavePolicySettings, granted_on: date) -> date | None:
    """Last usable day of a grant issued on ``granted_on``; None when grants never expire."""
    if policy.expire_months <= 0:
        return None
    # One day short of a plain month offset, so a cycle lapses the day before
    # the next grant of the same length and carryover can pick it up.
    return add_months(granted_on, policy.expire_months) - timedelta(days=1)


def parse_hire_date(value: date | str) -> date:
    """Coerce a roster hire date. Raises ValueError for unparsable input."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


def anniversary_service_years(hire_date: date, grant_date: date, offset_days: int) -> int | None:
    """Return k when ``grant_date`` is the k-th anniversary (k >= 1) shifted by the offset."""
    unshifted = grant_date - timedelta(days=offset_days)
    if unshifted < hire_date:
        return None
    elapsed = service_duration(hire_date, unshifted).years
    for k in (elapsed, elapsed + 1):
        if k >= 1 and add_years(hire_date, k) + timedelta(days=offset_days) == grant_date:
            return k
    return None


def attendance_ratio(
    summary: AttendanceSummary | None,
    basis: ProrationBasis,
    day_hours: float,
    period_start: date,
    period_end: date,
) -> float:
    """Attendance ratio for the proration period; missing data counts as zero attendance."""
    if summary is None:
        return 0.0
    workdays = summary.workdays or count_weekdays(period_start, period_end)
    if workdays <= 0:
        return 0.0
    if basis == ProrationBasis.DAYS:
        return summary.attended_days / workdays
    expected_minutes = workdays * day_hours * 60
    return summary.worked_minutes / expected_minutes


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


def coerce_policy(policy: LeavePolicySettings | Mapping[str, Any]) -> LeavePolicySettings:
    """Accept validated settings or a raw mapping; an invalid mapping raises ConfigurationError."""
    if isinstance(policy, LeavePolicySettings):
        return policy
    raw = dict(policy)
    if "base_days_by_service" in raw:
        raw["base_days_by_service"] = normalize_base_days(raw["base_days_by_service"])
    try:
        return LeavePolicySettings.model_validate(raw)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        detail = ", ".join(fields) if fields else "settings"
        msg = f"Invalid leave policy configuration: {detail}"
        raise ConfigurationError(msg) from exc


def _ineligible(
    employee: EmployeeInfo,
    grant_date: date,
    leave_type_id: uuid.UUID | None,
    reason: str,
    **kw: Any,
) -> PreviewRow:
    return PreviewRow(
        user_id=employee.id,
        leave_type_id=leave_type_id,
        granted_on=grant_date,
        eligible=False,
        reason=reason,
        **kw,
    )


def compute_grant_row(
    policy: LeavePolicySettings,
    grant_date: date,
    employee: EmployeeInfo,
    attendance: AttendanceSummary | None = None,
    *,
    leave_type_id: uuid.UUID | None = None,
) -> PreviewRow:
    """Compute the preview row for one employee."""
    if employee.hire_date is None or employee.hire_date == "":
        return _ineligible(employee, grant_date, leave_type_id, REASON_NO_HIRE_DATE)
    try:
        hire_date = parse_hire_date(employee.hire_date)
    except ValueError:
        return _ineligible(employee, grant_date, leave_type_id, REASON_INVALID_HIRE_DATE)
    if grant_date < hire_date:
        return _ineligible(employee, grant_date, leave_type_id, REASON_NOT_YET_HIRED)

    elapsed = service_duration(hire_date, grant_date)
    ratio = 1.0

    if policy.accrual_method == AccrualMethod.ANNIVERSARY:
        k = anniversary_service_years(hire_date, grant_date, policy.anniversary_offset_days)
        if k is None:
            return _ineligible(
                employee, grant_date, leave_type_id, REASON_NOT_ANNIVERSARY, service_years=elapsed.years
            )
        duration = ServiceDuration(k, 0, 0)
    elif policy.accrual_method == AccrualMethod.FISCAL_FIXED:
        service_years = grant_date.year - hire_date.year
        if grant_date.month != policy.fiscal_start_month or grant_date.day != 1:
            return _ineligible(
                employee, grant_date, leave_type_id, REASON_NOT_FISCAL_START, service_years=service_years
            )
        if policy.base_days_by_service.unit == ServiceUnit.YEAR:
            duration = ServiceDuration(service_years, 0, 0)
        else:
            duration = elapsed
    else:
        if grant_date.day != 1:
            return _ineligible(
                employee, grant_date, leave_type_id, REASON_NOT_MONTH_START, service_years=elapsed.years
            )
        duration = elapsed
        if policy.monthly_proration and policy.monthly_proration_basis is not None:
            period_start, period_end = previous_month(grant_date)
            ratio = attendance_ratio(
                attendance, policy.monthly_proration_basis, policy.day_hours, period_start, period_end
            )
            if ratio < policy.monthly_min_attendance_rate:
                return _ineligible(
                    employee, grant_date, leave_type_id, REASON_LOW_ATTENDANCE, service_years=duration.years
                )
            ratio = min(max(ratio, 0.0), 1.0)

    yearly_days = policy.base_days_by_service.lookup(duration.years, duration.months, duration.days)
    if yearly_days is None:
        return _ineligible(employee, grant_date, leave_type_id, REASON_NO_BASE_DAYS, service_years=duration.years)

    base_days = yearly_days / 12 * ratio if policy.accrual_method == AccrualMethod.MONTHLY else yearly_days
    quantity = days_to_minutes(base_days, policy.day_hours)
    if quantity <= 0:
        return _ineligible(
            employee,
            grant_date,
            leave_type_id,
            REASON_ZERO_AMOUNT,
            service_years=duration.years,
            base_days=base_days,
        )

    return PreviewRow(
        user_id=employee.id,
        leave_type_id=leave_type_id,
        granted_on=grant_date,
        eligible=True,
        service_years=duration.years,
        base_days=base_days,
        quantity_minutes=quantity,
    )


def compute_grants(
    policy: LeavePolicySettings | Mapping[str, Any],
    grant_date: date,
    employees: Iterable[EmployeeInfo],
    attendance: Mapping[uuid.UUID, AttendanceSummary | None] | None = None,
    *,
    leave_type_id: uuid.UUID | None = None,
) -> list[PreviewRow]:
    """Compute one preview row per employee, in roster order.

    ``attendance`` holds each employee's summary for the month before
    ``grant_date`` and is only consulted for prorated monthly policies.
    Rows for ineligible employees carry a reason instead of failing the batch.
    """
    settings = coerce_policy(policy)
    attendance = attendance or {}
    rows = [
        compute_grant_row(settings, grant_date, employee, attendance.get(employee.id), leave_type_id=leave_type_id)
        for employee in employees
    ]
    logger.debug(
        "Computed %d grant rows for %s (%d eligible)",
        len(rows),
        grant_date,
        sum(1 for r in rows if r.eligible),
    )
    return rows
