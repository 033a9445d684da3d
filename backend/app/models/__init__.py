from sqlmodel import SQLModel

from app.models.audit import AuditLog
from app.models.base import TimestampMixin, UUIDBase
from app.models.consumption import LeaveConsumption
from app.models.enums import (
    AccrualMethod,
    AuditAction,
    AuditEntityType,
    ConsumptionStatus,
    DeductionTiming,
    GrantSource,
    ProrationBasis,
    ServiceUnit,
)
from app.models.grant import LeaveGrant
from app.models.policy import LeavePolicy

__all__ = [
    "AccrualMethod",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "ConsumptionStatus",
    "DeductionTiming",
    "GrantSource",
    "LeaveConsumption",
    "LeaveGrant",
    "LeavePolicy",
    "ProrationBasis",
    "SQLModel",
    "ServiceUnit",
    "TimestampMixin",
    "UUIDBase",
]
