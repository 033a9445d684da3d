# ruff: noqa: B008, TC003
"""Request-scoped caller identity.

Authentication is delegated to the gateway in front of this service; it
forwards the caller as ``X-Company-Id``, ``X-User-Id`` and ``X-Role``.
"""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path, status

from app.exceptions import AppError
from app.schemas.auth import AuthContext


async def get_auth_context(
    x_company_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default="employee"),
) -> AuthContext:
    return AuthContext(company_id=x_company_id, user_id=x_user_id, role=x_role.strip().lower())


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(auth: AuthDep) -> AuthContext:
    """Policy changes, grant runs and CSV transfer are admin-only."""
    if not auth.is_admin:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def validate_company_scope(company_id: uuid.UUID = Path(), auth: AuthContext = Depends(get_auth_context)) -> None:
    """Reject requests whose path company differs from the caller's company."""
    if company_id != auth.company_id:
        raise AppError("Company ID mismatch", status_code=status.HTTP_403_FORBIDDEN)


def scoped_user_id(auth: AuthContext, user_id: uuid.UUID | None) -> uuid.UUID | None:
    """Admins may filter by any employee; everyone else only sees themselves."""
    return user_id if auth.is_admin else auth.user_id
