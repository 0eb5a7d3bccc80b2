"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    environment: str
    alert_store: Literal["connected", "disconnected"] | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check; the forecasting engine has no external dependencies."""
    return HealthResponse(status="ok", environment=get_settings().app_env)


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> HealthResponse:
    """Readiness check including alert store connectivity.

    Analysis still works without the alert store, so a lost connection
    reports ``degraded`` rather than ``unhealthy``.

    Args:
        db: Database session dependency.

    Returns:
        Health status with alert store state.
    """
    environment = get_settings().app_env
    try:
        await db.execute(text("SELECT 1"))
        return HealthResponse(status="ok", environment=environment, alert_store="connected")
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            "health.alert_store_disconnected",
            error=str(e),
            error_type=type(e).__name__,
        )
        return HealthResponse(
            status="degraded", environment=environment, alert_store="disconnected"
        )
