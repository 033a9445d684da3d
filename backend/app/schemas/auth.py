# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

ADMIN_ROLE = "admin"


class AuthContext(BaseModel):
    """Caller identity taken from the X-Company-Id / X-User-Id / X-Role headers."""

    company_id: uuid.UUID
    user_id: uuid.UUID
    role: str = "employee"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
