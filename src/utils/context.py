"""
Context management utilities.

Provides context variables for request tracing across HTTP requests,
background replacement searches and Celery tasks.
"""

import logging
from contextvars import ContextVar
from typing import Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

# Propagated across awaits and copied into tasks created with asyncio.create_task
correlation_id_var: ContextVar[Optional[str]] = ContextVar(
    'correlation_id',
    default=None
)

# Requester or provider acting in the current request
actor_id_var: ContextVar[Optional[str]] = ContextVar(
    'actor_id',
    default=None
)


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """
    Set the correlation ID in context.

    Args:
        correlation_id: Correlation ID to set
    """
    if not correlation_id:
        logger.warning("Attempted to set empty correlation_id")
        return

    correlation_id_var.set(correlation_id)
    logger.debug(f"Correlation ID set: {correlation_id}")


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID and set it in context.

    Returns:
        Generated correlation ID (UUID4)
    """
    correlation_id = str(uuid4())
    set_correlation_id(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    correlation_id_var.set(None)


def get_actor_id() -> Optional[str]:
    """Get the id of the requester or provider behind the current call."""
    return actor_id_var.get()


def set_actor_id(actor_id: str) -> None:
    actor_id_var.set(actor_id)


def clear_actor_id() -> None:
    actor_id_var.set(None)


def clear_all_context() -> None:
    """Clear all context variables."""
    clear_correlation_id()
    clear_actor_id()

