import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.db import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded"]
    name: str
    version: str
    environment: str
    database: Literal["ok", "unavailable"]


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report service and database status."""
    settings = get_settings()
    database: Literal["ok", "unavailable"] = "ok"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database connectivity failed")
        database = "unavailable"

    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        database=database,
    )
