"""
FastAPI dependencies for dependency injection.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.connection import get_async_session
from src.modules.lifecycle import OrderLifecycleController, get_controller


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database session."""
    async for session in get_async_session():
        yield session


def get_controller_dep() -> OrderLifecycleController:
    """Dependency for the order lifecycle controller."""
    return get_controller()
