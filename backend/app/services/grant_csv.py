"""CSV ingestion and export of leave grants."""

# ruff: noqa: TC003
from __future__ import annotations

import csv
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from app.exceptions import RowValidationError
from app.models.enums import AuditAction, AuditEntityType, GrantSource
from app.models.grant import LeaveGrant
from app.schemas.grant import MAX_QUANTITY_MINUTES
from app.services import repository
from app.services.audit import write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

GRANT_CSV_COLUMNS = ("user_id", "leave_type_id", "quantity_minutes", "granted_on", "expires_on", "note")
REQUIRED_COLUMNS = ("user_id", "leave_type_id", "quantity_minutes", "granted_on")

_TEMPLATE_EXAMPLE = {
    "user_id": "00000000-0000-0000-0000-000000000000",
    "leave_type_id": "00000000-0000-0000-0000-000000000000",
    "quantity_minutes": "480",
    "granted_on": "2025-04-01",
    "expires_on": "2027-03-31",
    "note": "initial import",
}


@dataclass
class CsvImportResult:
    inserted: int = 0
    skipped: int = 0
    error_rows: int = 0


@dataclass(frozen=True)
class CsvGrantRow:
    """One validated CSV data row."""

    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    quantity_minutes: int
    granted_on: date
    expires_on: date | None
    note: str | None

    @property
    def key(self) -> tuple[uuid.UUID, uuid.UUID, date]:
        return (self.user_id, self.leave_type_id, self.granted_on)


def _cell(record: dict[str, str | None], name: str) -> str:
    return (record.get(name) or "").strip()


def _parse_uuid(record: dict[str, str | None], name: str, row_number: int) -> uuid.UUID:
    value = _cell(record, name)
    try:
        return uuid.UUID(value)
    except ValueError:
        msg = f"{name} is not a valid UUID: {value!r}"
        raise RowValidationError(msg, row_number) from None


def _parse_date(record: dict[str, str | None], name: str, row_number: int) -> date:
    value = _cell(record, name)
    try:
        return date.fromisoformat(value)
    except ValueError:
        msg = f"{name} is not a YYYY-MM-DD date: {value!r}"
        raise RowValidationError(msg, row_number) from None


def parse_grant_row(record: dict[str, str | None], row_number: int) -> CsvGrantRow:
    """Validate one CSV record. Raises RowValidationError describing the first problem."""
    user_id = _parse_uuid(record, "user_id", row_number)
    leave_type_id = _parse_uuid(record, "leave_type_id", row_number)

    raw_quantity = _cell(record, "quantity_minutes")
    try:
        quantity = int(raw_quantity)
    except ValueError:
        msg = f"quantity_minutes is not an integer: {raw_quantity!r}"
        raise RowValidationError(msg, row_number) from None
    if quantity < 0:
        msg = "quantity_minutes must be non-negative"
        raise RowValidationError(msg, row_number)
    if quantity > MAX_QUANTITY_MINUTES:
        msg = f"quantity_minutes must not exceed {MAX_QUANTITY_MINUTES}"
        raise RowValidationError(msg, row_number)

    granted_on = _parse_date(record, "granted_on", row_number)
    expires_on = _parse_date(record, "expires_on", row_number) if _cell(record, "expires_on") else None
    if expires_on is not None and expires_on < granted_on:
        msg = "expires_on must not precede granted_on"
        raise RowValidationError(msg, row_number)

    return CsvGrantRow(
        user_id=user_id,
        leave_type_id=leave_type_id,
        quantity_minutes=quantity,
        granted_on=granted_on,
        expires_on=expires_on,
        note=_cell(record, "note") or None,
    )


async def import_grants_csv(
    session: AsyncSession,
    company_id: uuid.UUID,
    text: str,
    actor_id: uuid.UUID,
) -> CsvImportResult:
    """Insert grants from CSV text with a header row.

    Malformed rows are counted in ``error_rows`` and never abort the
    batch. A row matching an existing CSV grant (or an earlier row of the
    same file) on user, leave type and date is skipped.
    """
    result = CsvImportResult()
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if reader.fieldnames is not None:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]
    records = list(reader)

    missing = [name for name in REQUIRED_COLUMNS if name not in (reader.fieldnames or [])]
    if missing:
        logger.warning("CSV grant import rejected: missing columns %s", ", ".join(missing))
        result.error_rows = len(records)
        return result

    existing = await repository.fetch_grants(session, company_id, source=GrantSource.CSV)
    seen = {(g.user_id, g.leave_type_id, g.granted_on) for g in existing}

    # Data rows start on line 2, after the header.
    for row_number, record in enumerate(records, start=2):
        try:
            row = parse_grant_row(record, row_number)
        except RowValidationError as exc:
            logger.warning("Skipping CSV row %d: %s", row_number, exc.message)
            result.error_rows += 1
            continue

        if row.key in seen:
            result.skipped += 1
            continue
        seen.add(row.key)

        grant = LeaveGrant(
            company_id=company_id,
            user_id=row.user_id,
            leave_type_id=row.leave_type_id,
            quantity_minutes=row.quantity_minutes,
            granted_on=row.granted_on,
            expires_on=row.expires_on,
            source=GrantSource.CSV.value,
            note=row.note,
            created_by=actor_id,
        )
        if await repository.insert_grant(session, grant):
            result.inserted += 1
        else:
            result.skipped += 1

    await write_audit_log(
        session,
        company_id=company_id,
        actor_id=actor_id,
        entity_type=AuditEntityType.GRANT_IMPORT,
        action=AuditAction.IMPORT,
        details={"inserted": result.inserted, "skipped": result.skipped, "error_rows": result.error_rows},
    )
    await repository.commit(session)
    logger.info(
        "CSV grant import: inserted=%d skipped=%d error_rows=%d",
        result.inserted,
        result.skipped,
        result.error_rows,
    )
    return result


def _write_csv(rows: list[dict[str, str]]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=GRANT_CSV_COLUMNS, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return output.getvalue()


def grant_to_csv_record(grant: LeaveGrant) -> dict[str, str]:
    return {
        "user_id": str(grant.user_id),
        "leave_type_id": str(grant.leave_type_id),
        "quantity_minutes": str(grant.quantity_minutes),
        "granted_on": grant.granted_on.isoformat(),
        "expires_on": grant.expires_on.isoformat() if grant.expires_on else "",
        "note": grant.note or "",
    }


async def export_grants_csv(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    user_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
) -> str:
    """Export grants in the import format, oldest first."""
    grants = await repository.fetch_grants(session, company_id, user_id=user_id, leave_type_id=leave_type_id)
    return _write_csv([grant_to_csv_record(g) for g in grants])


def grants_csv_template() -> str:
    """Header plus one example row."""
    return _write_csv([_TEMPLATE_EXAMPLE])
