"""
Repository pattern implementation for database operations.
Provides clean abstraction layer for data access.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import and_, delete, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.constants import QuoteStatus
from src.modules.matching.schemas import CoordinatesSchema, ProviderRecordSchema
from src.modules.matching.utils import is_valid_location

from .models import ArchivedOrder, Base, Order, Provider, Quote, Review

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)


class BaseRepository:
    """Base repository with common CRUD operations."""

    def __init__(self, model: Type[T]):
        self.model = model

    async def get_by_id(self, session: AsyncSession, id_value: str) -> Optional[T]:
        """Get entity by primary key."""
        result = await session.execute(
            select(self.model).where(self.model.id == id_value)
        )
        return result.scalar_one_or_none()

    async def create(self, session: AsyncSession, entity: T) -> T:
        """Create new entity."""
        session.add(entity)
        await session.flush()
        return entity

    async def delete(self, session: AsyncSession, entity: T) -> bool:
        """Delete entity."""
        await session.delete(entity)
        await session.flush()
        return True


class ProviderRepository(BaseRepository):
    """Repository for Provider operations."""

    def __init__(self):
        super().__init__(Provider)

    async def get_in_geohash_range(
        self, session: AsyncSession, start: str, end: str
    ) -> List[Provider]:
        """Providers with start <= geohash <= end, ordered by geohash."""
        result = await session.execute(
            select(Provider)
            .where(Provider.geohash >= start)
            .where(Provider.geohash <= end)
            .order_by(Provider.geohash)
        )
        return list(result.scalars().all())

    @staticmethod
    def to_record(provider: Provider) -> ProviderRecordSchema:
        """Convert a row to the record shape used by the matching module."""
        location = None
        if is_valid_location(provider.latitude, provider.longitude):
            location = CoordinatesSchema(lat=provider.latitude, lng=provider.longitude)

        return ProviderRecordSchema(
            id=provider.id,
            category=provider.category,
            available=bool(provider.available),
            rating=provider.rating or 0.0,
            location=location,
            geohash=provider.geohash,
            average_response_time_minutes=provider.average_response_time_minutes,
            current_active_jobs=provider.current_active_jobs,
            max_concurrent_jobs=provider.max_concurrent_jobs,
        )


class OrderRepository(BaseRepository):
    """Repository for active Order operations."""

    def __init__(self):
        super().__init__(Order)

    async def update_if_status(
        self,
        session: AsyncSession,
        order_id: str,
        expected_statuses: Sequence[str],
        values: Dict[str, Any],
    ) -> bool:
        """
        Atomic conditional update.

        Applies ``values`` only if the order currently has one of
        ``expected_statuses``. Returns False when no row matched.
        """
        result = await session.execute(
            update(Order)
            .where(Order.id == order_id)
            .where(Order.status.in_(list(expected_statuses)))
            .values(version=Order.version + 1, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_if_quoteless(
        self, session: AsyncSession, order_id: str, expected_status: str
    ) -> bool:
        """Delete the order only if it has the expected status and no quote at all."""
        has_quotes = exists().where(Quote.order_id == order_id)
        result = await session.execute(
            delete(Order)
            .where(Order.id == order_id)
            .where(Order.status == expected_status)
            .where(~has_quotes)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class QuoteRepository(BaseRepository):
    """Repository for Quote operations. Quotes are never deleted."""

    def __init__(self):
        super().__init__(Quote)

    async def list_for_order(
        self, session: AsyncSession, order_id: str, include_rejected: bool = True
    ) -> List[Quote]:
        query = select(Quote).where(Quote.order_id == order_id)
        if not include_rejected:
            query = query.where(Quote.status != QuoteStatus.REJECTED.value)
        result = await session.execute(query.order_by(Quote.timestamp.desc()))
        return list(result.scalars().all())

    async def count_for_order(self, session: AsyncSession, order_id: str) -> int:
        result = await session.execute(
            select(func.count()).select_from(Quote).where(Quote.order_id == order_id)
        )
        return int(result.scalar_one())

    async def has_open_quote(self, session: AsyncSession, order_id: str, provider_id: str) -> bool:
        result = await session.execute(
            select(func.count())
            .select_from(Quote)
            .where(and_(
                Quote.order_id == order_id,
                Quote.provider_id == provider_id,
                Quote.status != QuoteStatus.REJECTED.value,
            ))
        )
        return int(result.scalar_one()) > 0

    async def set_status_if_pending(
        self,
        session: AsyncSession,
        quote_id: str,
        order_id: str,
        status: QuoteStatus,
        **values: Any,
    ) -> bool:
        """Move a pending quote to ``status``. Returns False if it was not pending."""
        result = await session.execute(
            update(Quote)
            .where(Quote.id == quote_id)
            .where(Quote.order_id == order_id)
            .where(Quote.status == QuoteStatus.PENDING.value)
            .values(status=status.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class ArchivedOrderRepository(BaseRepository):
    """Repository for archived orders."""

    def __init__(self):
        super().__init__(ArchivedOrder)


class ReviewRepository(BaseRepository):
    """Repository for reviews."""

    def __init__(self):
        super().__init__(Review)


class SqlProviderDirectory:
    """Provider directory backed by the providers table."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def range_query(self, start: str, end: str) -> List[ProviderRecordSchema]:
        # One short-lived session per range so ranges can be scanned concurrently
        async with self.session_factory() as session:
            providers = await provider_repository.get_in_geohash_range(session, start, end)
            return [ProviderRepository.to_record(p) for p in providers]


# Repository instances
provider_repository = ProviderRepository()
order_repository = OrderRepository()
quote_repository = QuoteRepository()
archived_order_repository = ArchivedOrderRepository()
review_repository = ReviewRepository()
