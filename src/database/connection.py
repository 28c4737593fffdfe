"""
Database connection and session management.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from src.config import settings
from src.utils.context import get_correlation_id

logger = logging.getLogger(__name__)

# Slow query threshold in seconds
SLOW_QUERY_THRESHOLD = 0.1  # 100ms

# Base class for models
Base = declarative_base()


def build_engine(url: str, **engine_kwargs) -> AsyncEngine:
    """
    Create an async engine.

    Postgres gets a sized connection pool; other backends (SQLite in tests)
    take whatever pool options the caller passes.
    """
    if url.startswith("postgresql"):
        engine_kwargs.setdefault("pool_size", 10)
        engine_kwargs.setdefault("max_overflow", 20)
        engine_kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=settings.debug, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory used by repositories and transactions."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async_engine = build_engine(settings.database_url)
AsyncSessionLocal = build_session_factory(async_engine)


# ============================================================
# DATABASE QUERY LOGGING
# ============================================================

@event.listens_for(Engine, "before_cursor_execute")
def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Record start time for query timing."""
    conn.info.setdefault('query_start_time', []).append(time.time())


@event.listens_for(Engine, "after_cursor_execute")
def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log query with duration and flag slow queries."""
    query_start_times = conn.info.get('query_start_time', [])
    if not query_start_times:
        return

    start_time = query_start_times.pop()
    duration_seconds = time.time() - start_time
    duration_ms = duration_seconds * 1000

    query_type = statement.strip().split()[0].upper() if statement else "UNKNOWN"
    query_preview = statement[:200] + "..." if len(statement) > 200 else statement
    is_slow = duration_seconds > SLOW_QUERY_THRESHOLD

    log_level = logging.WARNING if is_slow else logging.DEBUG

    logger.log(
        log_level,
        f"Query executed: {query_type} ({duration_ms:.2f}ms)",
        extra={
            "event": "database_query",
            "query_type": query_type,
            "query_preview": query_preview,
            "duration_ms": round(duration_ms, 2),
            "is_slow_query": is_slow,
            "executemany": executemany,
            "correlation_id": get_correlation_id(),
        },
    )


# ============================================================
# SESSION MANAGEMENT
# ============================================================

async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def async_session_context(
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> AsyncGenerator[AsyncSession, None]:
    """Async context manager committing on success, rolling back on error."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_database(engine: AsyncEngine = async_engine) -> None:
    """Create all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database(engine: AsyncEngine = async_engine) -> None:
    """Close database connections."""
    await engine.dispose()
