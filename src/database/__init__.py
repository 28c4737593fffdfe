from .connection import (
    AsyncSessionLocal,
    Base,
    async_engine,
    build_engine,
    build_session_factory,
    get_async_session,
    init_database,
)
from .models import ArchivedOrder, Order, Provider, Quote, Review

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "async_engine",
    "build_engine",
    "build_session_factory",
    "get_async_session",
    "init_database",
    "ArchivedOrder",
    "Order",
    "Provider",
    "Quote",
    "Review",
]
