from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI

    from app.config import Settings

# Dev auth headers read by app.api.deps.
_AUTH_HEADERS = ["X-Company-Id", "X-User-Id", "X-Role"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure CORS for the browser client, including CSV downloads."""
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", *_AUTH_HEADERS],
        expose_headers=["Content-Disposition"],
    )
