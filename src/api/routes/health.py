"""
Health Check API endpoints.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db_session
from src.api.schemas import HealthResponse
from src.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


async def _database_ok(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


@router.get(
    "/",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of all services.",
)
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """
    Health check of the components the engine needs to serve requests.

    Checks:
    - Database connection
    """
    services = {"database": await _database_ok(session)}
    overall_status = "healthy" if all(services.values()) else "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.utcnow(),
        services=services,
        version=settings.app_version,
    )


@router.get(
    "/live",
    summary="Liveness probe",
    description="Simple liveness check for Kubernetes.",
)
async def liveness():
    """Simple liveness probe - returns 200 if server is running."""
    return {"status": "alive"}


@router.get(
    "/ready",
    summary="Readiness probe",
    description="Readiness check for Kubernetes.",
)
async def readiness(session: AsyncSession = Depends(get_db_session)):
    """Ready once the database answers."""
    if not await _database_ok(session):
        return {"status": "not_ready", "reason": "Database unavailable"}
    return {"status": "ready"}
