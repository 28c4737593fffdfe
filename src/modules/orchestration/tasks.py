"""
Celery tasks for background lifecycle work.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.pool import NullPool

from src.config import settings
from src.database.connection import build_engine, build_session_factory
from src.modules.lifecycle.controller import OrderLifecycleController

from .celery_app import celery_app, BaseTask

logger = logging.getLogger(__name__)


async def _find_replacement(order_id: str) -> Optional[str]:
    # Each task run owns its event loop, so it gets its own engine
    engine = build_engine(settings.database_url, poolclass=NullPool)
    try:
        controller = OrderLifecycleController(session_factory=build_session_factory(engine))
        return await controller.find_replacement(order_id)
    finally:
        await engine.dispose()


@celery_app.task(bind=True, base=BaseTask, name="find_replacement_provider")
def find_replacement_provider(
    self,
    order_id: str,
    correlation_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Replacement search after a quote rejection.

    Args:
        order_id: Order that lost a quote
        correlation_id: Request correlation id

    Returns:
        Dict with the appended provider id, if any
    """
    logger.info(f"Finding replacement provider for order={order_id}")

    provider_id = asyncio.run(_find_replacement(order_id))

    return {
        "order_id": order_id,
        "replacement_provider_id": provider_id,
        "found": provider_id is not None,
    }


async def _check_database() -> bool:
    engine = build_engine(settings.database_url, poolclass=NullPool)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    finally:
        await engine.dispose()


@celery_app.task(name="health_check")
def health_check_task() -> Dict[str, Any]:
    """
    Periodic health check task.

    Returns:
        Dict with health status of all services
    """
    results = {
        "timestamp": datetime.utcnow().isoformat(),
        "services": {},
    }

    try:
        results["services"]["database"] = asyncio.run(_check_database())
    except Exception as e:
        results["services"]["database"] = False
        logger.error(f"Database health check failed: {e}")

    results["healthy"] = all(results["services"].values())
    return results
