"""Tests for the accrual calculator: calendar helpers, eligibility rules and grant sizing."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

import pytest

from app.exceptions import ConfigurationError
from app.models.enums import AccrualMethod, ProrationBasis
from app.schemas.policy import LeavePolicySettings
from app.services.accrual import (
    REASON_INVALID_HIRE_DATE,
    REASON_LOW_ATTENDANCE,
    REASON_NO_BASE_DAYS,
    REASON_NO_HIRE_DATE,
    REASON_NOT_ANNIVERSARY,
    REASON_NOT_FISCAL_START,
    REASON_NOT_MONTH_START,
    REASON_NOT_YET_HIRED,
    REASON_ZERO_AMOUNT,
    ServiceDuration,
    add_months,
    add_years,
    anniversary_service_years,
    compute_expires_on,
    compute_grants,
    count_weekdays,
    previous_month,
    round_half_up,
    service_duration,
)
from app.services.attendance import AttendanceSummary
from app.services.employee import EmployeeInfo

COMPANY_ID = uuid.uuid4()
LEAVE_TYPE_ID = uuid.uuid4()


def _employee(hire_date: date | str | None, employee_id: uuid.UUID | None = None) -> EmployeeInfo:
    return EmployeeInfo(id=employee_id or uuid.uuid4(), company_id=COMPANY_ID, hire_date=hire_date)


def _policy(**overrides: Any) -> LeavePolicySettings:
    values: dict[str, Any] = {"base_days_by_service": {"unit": "year", "data": {"1": 11, "2": 12}}}
    values.update(overrides)
    return LeavePolicySettings.model_validate(values)


def _row(policy: LeavePolicySettings, grant_date: date, employee: EmployeeInfo, attendance: Any = None):
    attendance_map = {employee.id: attendance} if attendance is not None else None
    return compute_grants(policy, grant_date, [employee], attendance_map, leave_type_id=LEAVE_TYPE_ID)[0]


# ===========================================================================
# Calendar helpers
# ===========================================================================


class TestCalendarHelpers:
    def test_add_months_clamps_day(self) -> None:
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_add_months_crosses_year(self) -> None:
        assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)
        assert add_months(date(2025, 4, 1), 24) == date(2027, 4, 1)

    def test_add_years_leap_day(self) -> None:
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)

    def test_service_duration_exact_years(self) -> None:
        assert service_duration(date(2024, 4, 1), date(2025, 4, 1)) == ServiceDuration(1, 0, 0)

    def test_service_duration_partial(self) -> None:
        assert service_duration(date(2024, 1, 31), date(2024, 3, 1)) == ServiceDuration(0, 1, 1)
        assert service_duration(date(2024, 4, 1), date(2025, 3, 31)) == ServiceDuration(0, 11, 30)

    def test_previous_month(self) -> None:
        assert previous_month(date(2025, 3, 1)) == (date(2025, 2, 1), date(2025, 2, 28))
        assert previous_month(date(2025, 1, 1)) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_count_weekdays(self) -> None:
        # February 2025 starts on a Saturday and has exactly four weeks.
        assert count_weekdays(date(2025, 2, 1), date(2025, 2, 28)) == 20
        assert count_weekdays(date(2025, 3, 1), date(2025, 3, 31)) == 21
        assert count_weekdays(date(2025, 3, 2), date(2025, 3, 1)) == 0

    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4999) == 2

    def test_compute_expires_on(self) -> None:
        assert compute_expires_on(_policy(), date(2025, 4, 1)) == date(2027, 3, 31)
        assert compute_expires_on(_policy(expire_months=12), date(2024, 3, 31)) == date(2025, 3, 30)
        assert compute_expires_on(_policy(expire_months=0), date(2025, 4, 1)) is None


# ===========================================================================
# Anniversary
# ===========================================================================


class TestAnniversary:
    def test_first_anniversary_grants_base_amount(self) -> None:
        """11 base days at 8 hours per day on the first anniversary is 5280 minutes."""
        row = _row(_policy(day_hours=8), date(2025, 4, 1), _employee(date(2024, 4, 1)))
        assert row.eligible
        assert row.reason is None
        assert row.service_years == 1
        assert row.base_days == 11
        assert row.quantity_minutes == 5280
        assert row.leave_type_id == LEAVE_TYPE_ID

    def test_second_anniversary_uses_second_entry(self) -> None:
        row = _row(_policy(), date(2026, 4, 1), _employee(date(2024, 4, 1)))
        assert row.service_years == 2
        assert row.quantity_minutes == 12 * 8 * 60

    @pytest.mark.parametrize("grant_date", [date(2025, 3, 31), date(2025, 4, 2)])
    def test_day_before_and_after_anniversary_ineligible(self, grant_date: date) -> None:
        row = _row(_policy(), grant_date, _employee(date(2024, 4, 1)))
        assert not row.eligible
        assert row.reason == REASON_NOT_ANNIVERSARY
        assert row.quantity_minutes == 0

    def test_hire_date_itself_is_not_an_anniversary(self) -> None:
        row = _row(_policy(), date(2024, 4, 1), _employee(date(2024, 4, 1)))
        assert not row.eligible
        assert row.reason == REASON_NOT_ANNIVERSARY

    def test_positive_offset_shifts_grant_date(self) -> None:
        policy = _policy(anniversary_offset_days=10)
        assert not _row(policy, date(2025, 4, 1), _employee(date(2024, 4, 1))).eligible
        assert _row(policy, date(2025, 4, 11), _employee(date(2024, 4, 1))).eligible

    def test_negative_offset_grants_early(self) -> None:
        assert anniversary_service_years(date(2024, 4, 1), date(2025, 3, 31), -1) == 1
        row = _row(_policy(anniversary_offset_days=-1), date(2025, 3, 31), _employee(date(2024, 4, 1)))
        assert row.eligible
        assert row.quantity_minutes == 5280

    def test_leap_day_hire_anniversary_falls_on_feb_28(self) -> None:
        row = _row(_policy(), date(2025, 2, 28), _employee(date(2024, 2, 29)))
        assert row.eligible
        assert row.service_years == 1

    def test_month_unit_table(self) -> None:
        policy = _policy(base_days_by_service={"unit": "month", "data": {"1": {"0": 10}}})
        row = _row(policy, date(2025, 4, 1), _employee(date(2024, 4, 1)))
        assert row.eligible
        assert row.quantity_minutes == 4800

    def test_missing_table_entry_has_no_fallback(self) -> None:
        row = _row(_policy(), date(2027, 4, 1), _employee(date(2024, 4, 1)))
        assert not row.eligible
        assert row.service_years == 3
        assert row.reason == REASON_NO_BASE_DAYS

    def test_zero_entry_is_not_eligible(self) -> None:
        policy = _policy(base_days_by_service={"unit": "year", "data": {"1": 0}})
        row = _row(policy, date(2025, 4, 1), _employee(date(2024, 4, 1)))
        assert not row.eligible
        assert row.reason == REASON_ZERO_AMOUNT


# ===========================================================================
# Hire date problems
# ===========================================================================


class TestHireDate:
    @pytest.mark.parametrize("hire_date", [None, ""])
    def test_missing_hire_date(self, hire_date: str | None) -> None:
        row = _row(_policy(), date(2025, 4, 1), _employee(hire_date))
        assert not row.eligible
        assert row.reason == REASON_NO_HIRE_DATE

    def test_unparsable_hire_date(self) -> None:
        row = _row(_policy(), date(2025, 4, 1), _employee("not-a-date"))
        assert not row.eligible
        assert row.reason == REASON_INVALID_HIRE_DATE

    def test_string_hire_date_is_parsed(self) -> None:
        row = _row(_policy(), date(2025, 4, 1), _employee("2024-04-01"))
        assert row.eligible
        assert row.quantity_minutes == 5280

    def test_grant_before_hire(self) -> None:
        row = _row(_policy(), date(2024, 3, 1), _employee(date(2024, 4, 1)))
        assert not row.eligible
        assert row.reason == REASON_NOT_YET_HIRED

    def test_bad_rows_do_not_stop_the_batch(self) -> None:
        """One row per employee, in roster order, regardless of failures."""
        employees = [_employee(None), _employee("garbage"), _employee(date(2024, 4, 1))]
        rows = compute_grants(_policy(), date(2025, 4, 1), employees)
        assert [r.user_id for r in rows] == [e.id for e in employees]
        assert [r.eligible for r in rows] == [False, False, True]


# ===========================================================================
# Fiscal fixed
# ===========================================================================


class TestFiscalFixed:
    def test_grants_on_fiscal_start(self) -> None:
        policy = _policy(accrual_method=AccrualMethod.FISCAL_FIXED, fiscal_start_month=4)
        row = _row(policy, date(2025, 4, 1), _employee(date(2023, 10, 15)))
        assert row.eligible
        assert row.service_years == 2
        assert row.quantity_minutes == 12 * 8 * 60

    def test_other_dates_ineligible(self) -> None:
        policy = _policy(accrual_method=AccrualMethod.FISCAL_FIXED, fiscal_start_month=4)
        for grant_date in (date(2025, 5, 1), date(2025, 4, 2)):
            row = _row(policy, grant_date, _employee(date(2023, 10, 15)))
            assert not row.eligible
            assert row.reason == REASON_NOT_FISCAL_START

    def test_offset_is_ignored(self) -> None:
        policy = _policy(accrual_method=AccrualMethod.FISCAL_FIXED, fiscal_start_month=4, anniversary_offset_days=5)
        assert _row(policy, date(2025, 4, 1), _employee(date(2024, 1, 1))).eligible


# ===========================================================================
# Monthly
# ===========================================================================


class TestMonthly:
    def _monthly(self, **overrides: Any) -> LeavePolicySettings:
        return _policy(
            accrual_method=AccrualMethod.MONTHLY,
            base_days_by_service={"unit": "year", "data": {"0": 12, "1": 12}},
            **overrides,
        )

    def test_grants_a_twelfth_on_the_first(self) -> None:
        row = _row(self._monthly(), date(2025, 3, 1), _employee(date(2024, 1, 15)))
        assert row.eligible
        assert row.base_days == pytest.approx(1.0)
        assert row.quantity_minutes == 480

    def test_not_on_the_first(self) -> None:
        row = _row(self._monthly(), date(2025, 3, 2), _employee(date(2024, 1, 15)))
        assert not row.eligible
        assert row.reason == REASON_NOT_MONTH_START

    def test_days_proration(self) -> None:
        policy = self._monthly(monthly_proration=True, monthly_proration_basis=ProrationBasis.DAYS)
        attendance = AttendanceSummary(workdays=20, attended_days=15)
        row = _row(policy, date(2025, 3, 1), _employee(date(2024, 1, 15)), attendance)
        assert row.eligible
        assert row.quantity_minutes == 360

    def test_hours_proration_falls_back_to_weekday_count(self) -> None:
        """With no calendar data February 2025 has 20 workdays; half of them worked."""
        policy = self._monthly(monthly_proration=True, monthly_proration_basis=ProrationBasis.HOURS)
        attendance = AttendanceSummary(workdays=0, worked_minutes=20 * 8 * 60 // 2)
        row = _row(policy, date(2025, 3, 1), _employee(date(2024, 1, 15)), attendance)
        assert row.quantity_minutes == 240

    def test_ratio_is_clipped_to_one(self) -> None:
        policy = self._monthly(monthly_proration=True, monthly_proration_basis=ProrationBasis.DAYS)
        attendance = AttendanceSummary(workdays=20, attended_days=25)
        row = _row(policy, date(2025, 3, 1), _employee(date(2024, 1, 15)), attendance)
        assert row.quantity_minutes == 480

    def test_attendance_below_minimum(self) -> None:
        policy = self._monthly(
            monthly_proration=True,
            monthly_proration_basis=ProrationBasis.DAYS,
            monthly_min_attendance_rate=0.8,
        )
        attendance = AttendanceSummary(workdays=20, attended_days=15)
        row = _row(policy, date(2025, 3, 1), _employee(date(2024, 1, 15)), attendance)
        assert not row.eligible
        assert row.reason == REASON_LOW_ATTENDANCE

    def test_missing_attendance_grants_nothing(self) -> None:
        policy = self._monthly(monthly_proration=True, monthly_proration_basis=ProrationBasis.DAYS)
        row = _row(policy, date(2025, 3, 1), _employee(date(2024, 1, 15)))
        assert not row.eligible
        assert row.reason == REASON_ZERO_AMOUNT


# ===========================================================================
# Policy input
# ===========================================================================


class TestPolicyInput:
    def test_raw_mapping_is_accepted(self) -> None:
        raw = {"accrual_method": "anniversary", "base_days_by_service": {"unit": "year", "data": {"1": 11}}}
        rows = compute_grants(raw, date(2025, 4, 1), [_employee(date(2024, 4, 1))])
        assert rows[0].quantity_minutes == 5280

    def test_invalid_mapping_raises_before_processing(self) -> None:
        raw = {"accrual_method": "anniversary", "day_hours": 0}
        with pytest.raises(ConfigurationError, match="day_hours"):
            compute_grants(raw, date(2025, 4, 1), [_employee(date(2024, 4, 1))])

    def test_missing_required_numeric_field(self) -> None:
        with pytest.raises(ConfigurationError):
            compute_grants({"day_hours": None}, date(2025, 4, 1), [])

    def test_empty_roster(self) -> None:
        assert compute_grants(_policy(), date(2025, 4, 1), []) == []

    def test_bare_base_days_map_is_a_years_table(self) -> None:
        """Hired 2024-01-15, granted 2025-01-15 with {0: 10, 1: 11}: one service year, 5280 minutes."""
        raw = {
            "accrual_method": "anniversary",
            "day_hours": 8,
            "base_days_by_service": {0: 10, 1: 11},
            "anniversary_offset_days": 0,
        }
        row = compute_grants(raw, date(2025, 1, 15), [_employee(date(2024, 1, 15))])[0]
        assert row.service_years == 1
        assert row.base_days == 11
        assert row.quantity_minutes == 5280
