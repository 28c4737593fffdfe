"""
Transaction runner with optimistic-lock retries.

The work function receives a fresh session inside ``session.begin()``; all
its writes commit together or not at all. A version mismatch
(``StaleDataError``) or a uniqueness race (``IntegrityError``) rolls back
and re-runs the work from scratch, up to ``max_attempts`` times.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from src.config import settings

from .exceptions import TransactionConflictError

logger = logging.getLogger(__name__)

R = TypeVar("R")

RETRY_BASE_DELAY_SECONDS = 0.02


async def run_in_transaction(
    session_factory: async_sessionmaker,
    work: Callable[[AsyncSession], Awaitable[R]],
    operation: str,
    max_attempts: Optional[int] = None,
) -> R:
    """
    Run ``work`` atomically, retrying on write conflicts.

    Args:
        session_factory: Session factory bound to the target database
        work: Coroutine function performing reads and writes
        operation: Name used in logs and in the conflict error
        max_attempts: Attempt budget (defaults to settings)

    Returns:
        Whatever ``work`` returns

    Raises:
        TransactionConflictError: every attempt hit a conflict
    """
    attempts = max_attempts or settings.transaction_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await work(session)
        except (StaleDataError, IntegrityError) as e:
            logger.warning(
                f"{operation}: conflict on attempt {attempt}/{attempts}: {e.__class__.__name__}",
                extra={
                    "event": "transaction_conflict",
                    "operation": operation,
                    "attempt": attempt,
                },
            )
            if attempt < attempts:
                await asyncio.sleep(RETRY_BASE_DELAY_SECONDS * attempt)

    raise TransactionConflictError(operation, attempts)
