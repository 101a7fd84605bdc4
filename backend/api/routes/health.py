"""Health check endpoint: liveness plus a database ping."""

from typing import Any

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text
import logging

from app.config import get_settings
from db import database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=dict[str, Any])
async def health_check() -> dict[str, Any]:
    """
    Health check with dependency verification.
    Returns 503 if the database is unreachable.
    """
    settings = get_settings()
    checks: dict[str, str] = {}

    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        checks["database"] = "unavailable"

    if checks["database"] == "unavailable":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "unhealthy", "checks": checks},
        )

    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "execution_backend": settings.EXECUTION_BACKEND,
        **checks,
    }
