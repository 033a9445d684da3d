from __future__ import annotations

import enum


class AccrualMethod(enum.StrEnum):
    """Rule family that decides when and how much leave is granted."""

    ANNIVERSARY = "anniversary"
    FISCAL_FIXED = "fiscal_fixed"
    MONTHLY = "monthly"


class ServiceUnit(enum.StrEnum):
    """Granularity of the base-days-by-service table."""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"


class ProrationBasis(enum.StrEnum):
    """What the monthly attendance ratio is measured in."""

    DAYS = "days"
    HOURS = "hours"


class DeductionTiming(enum.StrEnum):
    """When a leave request is deducted from the balance."""

    APPLY = "apply"
    APPROVE = "approve"


class GrantSource(enum.StrEnum):
    """Origin of a leave grant."""

    POLICY = "policy"
    CSV = "csv"
    MANUAL = "manual"


class ConsumptionStatus(enum.StrEnum):
    """Workflow state of a consumption, owned by the request workflow."""

    PENDING = "pending"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    POLICY = "POLICY"
    GRANT = "GRANT"
    GRANT_RUN = "GRANT_RUN"
    GRANT_IMPORT = "GRANT_IMPORT"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    RUN = "RUN"
    IMPORT = "IMPORT"
