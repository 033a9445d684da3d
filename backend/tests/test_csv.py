"""Tests for CSV grant import, export and the import template."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from app.exceptions import RowValidationError
from app.models.audit import AuditLog
from app.models.grant import LeaveGrant
from app.services.grant_csv import GRANT_CSV_COLUMNS, import_grants_csv, parse_grant_row

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

COMPANY_ID = uuid.uuid4()
OTHER_COMPANY_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
USER_A = uuid.uuid4()
USER_B = uuid.uuid4()
LEAVE_TYPE_ID = uuid.uuid4()

AUTH_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(ADMIN_ID),
    "X-Role": "admin",
}
GRANTS_URL = f"/companies/{COMPANY_ID}/grants"
HEADER = ",".join(GRANT_CSV_COLUMNS)


def _line(user_id: uuid.UUID, quantity: str = "480", granted_on: str = "2025-04-01", expires_on: str = "") -> str:
    return f"{user_id},{LEAVE_TYPE_ID},{quantity},{granted_on},{expires_on},"


def _csv(*lines: str) -> str:
    return "\n".join([HEADER, *lines]) + "\n"


async def _count_grants(session: AsyncSession, company_id: uuid.UUID = COMPANY_ID) -> int:
    stmt = select(func.count()).select_from(LeaveGrant).where(col(LeaveGrant.company_id) == company_id)
    return (await session.execute(stmt)).scalar_one()


# ===========================================================================
# Row parsing (no DB)
# ===========================================================================


def _record(**overrides: str) -> dict[str, str | None]:
    record: dict[str, str | None] = {
        "user_id": str(USER_A),
        "leave_type_id": str(LEAVE_TYPE_ID),
        "quantity_minutes": "480",
        "granted_on": "2025-04-01",
        "expires_on": "",
        "note": "",
    }
    record.update(overrides)
    return record


def test_parse_valid_row() -> None:
    row = parse_grant_row(_record(expires_on="2027-03-31", note=" initial "), 2)
    assert row.user_id == USER_A
    assert row.quantity_minutes == 480
    assert row.expires_on is not None
    assert row.expires_on.isoformat() == "2027-03-31"
    assert row.note == "initial"


def test_parse_blank_optional_cells() -> None:
    row = parse_grant_row(_record(), 2)
    assert row.expires_on is None
    assert row.note is None


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"user_id": "not-a-uuid"}, "user_id"),
        ({"leave_type_id": ""}, "leave_type_id"),
        ({"quantity_minutes": "8h"}, "not an integer"),
        ({"quantity_minutes": "-1"}, "non-negative"),
        ({"quantity_minutes": "2147483648"}, "must not exceed"),
        ({"granted_on": "04/01/2025"}, "granted_on"),
        ({"expires_on": "2025-02-30"}, "expires_on"),
        ({"expires_on": "2025-03-31"}, "must not precede"),
    ],
)
def test_parse_rejects_malformed_rows(overrides: dict[str, str], message: str) -> None:
    with pytest.raises(RowValidationError, match=message) as exc_info:
        parse_grant_row(_record(**overrides), 7)
    assert exc_info.value.row_number == 7


# ===========================================================================
# Import
# ===========================================================================


async def test_import_counts_each_outcome(db_session: AsyncSession) -> None:
    text = _csv(
        _line(USER_A),
        _line(USER_B, quantity="abc"),
        _line(USER_B, granted_on="2025-13-01"),
        _line(USER_A),
        _line(USER_B, quantity="240", expires_on="2026-03-31"),
    )
    result = await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)
    assert (result.inserted, result.skipped, result.error_rows) == (2, 1, 2)
    assert await _count_grants(db_session) == 2

    audit = (await db_session.execute(select(AuditLog).where(col(AuditLog.entity_type) == "GRANT_IMPORT"))).scalar_one()
    assert audit.details_json == {"inserted": 2, "skipped": 1, "error_rows": 2}


async def test_import_skips_existing_csv_grants(db_session: AsyncSession) -> None:
    text = _csv(_line(USER_A), _line(USER_B))
    await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)

    again = await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)
    assert (again.inserted, again.skipped, again.error_rows) == (0, 2, 0)
    assert await _count_grants(db_session) == 2


async def test_import_out_of_range_quantity_is_a_row_error(db_session: AsyncSession) -> None:
    text = _csv(_line(USER_A, quantity="99999999999999999999"), _line(USER_B))
    result = await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)
    assert (result.inserted, result.skipped, result.error_rows) == (1, 0, 1)
    assert await _count_grants(db_session) == 1


async def test_same_rows_import_into_each_company(db_session: AsyncSession) -> None:
    text = _csv(_line(USER_A))
    first = await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)
    second = await import_grants_csv(db_session, OTHER_COMPANY_ID, text, ADMIN_ID)
    assert (first.inserted, first.skipped) == (1, 0)
    assert (second.inserted, second.skipped) == (1, 0)
    assert await _count_grants(db_session, OTHER_COMPANY_ID) == 1


async def test_import_missing_required_column(db_session: AsyncSession) -> None:
    text = (
        "user_id,leave_type_id,granted_on\n"
        f"{USER_A},{LEAVE_TYPE_ID},2025-04-01\n"
        f"{USER_B},{LEAVE_TYPE_ID},2025-04-01\n"
    )
    result = await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)
    assert (result.inserted, result.skipped, result.error_rows) == (0, 0, 2)
    assert await _count_grants(db_session) == 0


async def test_import_tolerates_bom_and_padded_header(db_session: AsyncSession) -> None:
    header = ", ".join(GRANT_CSV_COLUMNS)
    text = "\ufeff" + header + "\n" + _line(USER_A) + "\n"
    result = await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)
    assert result.inserted == 1


# ===========================================================================
# Endpoints
# ===========================================================================


async def test_import_endpoint(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"{GRANTS_URL}/import",
        content=_csv(_line(USER_A), _line(USER_B, quantity="")).encode("utf-8-sig"),
        headers={**AUTH_HEADERS, "Content-Type": "text/csv"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"inserted": 1, "skipped": 0, "error_rows": 1}


async def test_import_rejects_non_utf8_body(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"{GRANTS_URL}/import",
        content=b"\xff\xfe\x00bad",
        headers={**AUTH_HEADERS, "Content-Type": "text/csv"},
    )
    assert resp.status_code == 400


async def test_export_then_import_round_trip(async_client: AsyncClient, db_session: AsyncSession) -> None:
    text = _csv(
        _line(USER_A, expires_on="2027-03-31"),
        _line(USER_B, quantity="240"),
        _line(USER_A, granted_on="2024-04-01", quantity="600"),
    )
    await import_grants_csv(db_session, COMPANY_ID, text, ADMIN_ID)

    resp = await async_client.get(f"{GRANTS_URL}/export", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "leave_grants.csv" in resp.headers["content-disposition"]
    exported = resp.text
    lines = exported.strip().split("\n")
    assert lines[0] == HEADER
    assert len(lines) == 4
    assert lines[1].split(",")[3] == "2024-04-01"

    first = await import_grants_csv(db_session, OTHER_COMPANY_ID, exported, ADMIN_ID)
    assert (first.inserted, first.error_rows) == (3, 0)
    second = await import_grants_csv(db_session, OTHER_COMPANY_ID, exported, ADMIN_ID)
    assert (second.inserted, second.skipped) == (0, 3)
    assert await _count_grants(db_session, OTHER_COMPANY_ID) == 3


async def test_template(async_client: AsyncClient) -> None:
    resp = await async_client.get(
        f"{GRANTS_URL}/template",
        headers={"X-Company-Id": str(COMPANY_ID), "X-User-Id": str(USER_A)},
    )
    assert resp.status_code == 200
    lines = resp.text.strip().split("\n")
    assert lines[0] == HEADER
    assert len(lines) == 2
    assert "leave_grants_template.csv" in resp.headers["content-disposition"]


async def test_import_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        f"{GRANTS_URL}/import",
        content=_csv(_line(USER_A)).encode(),
        headers={"X-Company-Id": str(COMPANY_ID), "X-User-Id": str(USER_A), "X-Role": "employee"},
    )
    assert resp.status_code == 403
