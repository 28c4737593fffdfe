"""
Archival Transaction

Finalizes a completed order in one atomic unit:
1. Read the provider stats and the active order (abort if either is missing)
2. Recompute the rating when a review is supplied
3. Write the review
4. Write the archive record
5. Update provider stats (jobs done, active jobs clamped at zero)
6. Delete the active order

Provider and order rows are version-checked on flush, so a concurrent
writer makes the attempt fail and the whole unit is retried.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.constants import CLOSABLE_STATUSES, FinishRequestedBy, OrderStatus
from src.database.models import ARCHIVED_ORDER_FIELDS, ArchivedOrder, Review
from src.database.repositories import (
    archived_order_repository,
    order_repository,
    provider_repository,
    review_repository,
)

from .exceptions import NotFoundError, PreconditionFailedError
from .schemas import (
    ArchivedOrderSchema,
    ArchiveResultSchema,
    ProviderStatsSchema,
    ReviewInputSchema,
    ReviewSchema,
)
from .transactions import run_in_transaction

logger = logging.getLogger(__name__)


def recompute_rating(
    rating: float, reviews_count: int, review_rating: Optional[int]
) -> Tuple[float, int]:
    """
    Running average including one new review, rounded to two decimals.

    Without a review the pair is returned unchanged.
    """
    if review_rating is None:
        return rating, reviews_count

    new_count = reviews_count + 1
    new_rating = (rating * reviews_count + review_rating) / new_count
    return round(new_rating, 2), new_count


def new_review_id() -> str:
    return f"rev-{uuid.uuid4().hex}"


class ArchivalTransaction:
    """Atomic archive of a completed order."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Callable[[], datetime] = datetime.utcnow,
        max_attempts: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.max_attempts = max_attempts

    async def archive(
        self, order_id: str, review: Optional[ReviewInputSchema] = None
    ) -> ArchiveResultSchema:
        """
        Archive an order, optionally with the requester's review.

        Raises:
            NotFoundError: order or assigned provider missing
            PreconditionFailedError: order is not ASSIGNED or PENDING_CLOSURE
            TransactionConflictError: retries exhausted; the order stays active
        """

        async def work(session: AsyncSession) -> ArchiveResultSchema:
            return await self._archive(session, order_id, review)

        result = await run_in_transaction(
            self.session_factory,
            work,
            operation="archive_order",
            max_attempts=self.max_attempts,
        )

        logger.info(
            f"Order {order_id} archived, provider {result.provider_stats.provider_id} "
            f"rating={result.provider_stats.rating} reviews={result.provider_stats.reviews_count}",
            extra={
                "event": "order_archived",
                "order_id": order_id,
                "provider_id": result.provider_stats.provider_id,
                "reviewed": result.review is not None,
            },
        )
        return result

    async def _archive(
        self,
        session: AsyncSession,
        order_id: str,
        review: Optional[ReviewInputSchema],
    ) -> ArchiveResultSchema:
        order = await order_repository.get_by_id(session, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)

        if order.status not in [s.value for s in CLOSABLE_STATUSES]:
            raise PreconditionFailedError(
                f"Order {order_id} cannot be completed from {order.status}",
                expected=[s.value for s in CLOSABLE_STATUSES],
                actual=order.status,
            )

        provider_id = order.assigned_provider_id
        provider = (
            await provider_repository.get_by_id(session, provider_id)
            if provider_id else None
        )
        if provider is None:
            raise NotFoundError("Provider", str(provider_id))

        now = self.clock()
        new_rating, new_count = recompute_rating(
            provider.rating or 0.0,
            provider.reviews_count or 0,
            review.rating if review else None,
        )

        review_row = None
        if review is not None:
            review_row = Review(
                id=new_review_id(),
                order_id=order.id,
                provider_id=provider.id,
                requester_id=order.requester_id,
                rating=review.rating,
                comment=review.comment,
                images=list(review.images),
                created_at=now,
            )
            await review_repository.create(session, review_row)

        archived = ArchivedOrder(
            **{field: getattr(order, field) for field in ARCHIVED_ORDER_FIELDS},
            status=OrderStatus.ARCHIVED.value,
            completed_at=now,
            archived_at=now,
            finish_requested_by=order.finish_requested_by or FinishRequestedBy.REQUESTER.value,
            review_id=review_row.id if review_row else None,
            result_images=list(review.images) if review else [],
            final_review=(
                {"rating": review.rating, "comment": review.comment} if review else None
            ),
        )
        await archived_order_repository.create(session, archived)

        provider.rating = new_rating
        provider.reviews_count = new_count
        provider.jobs_done = (provider.jobs_done or 0) + 1
        provider.current_active_jobs = max(0, (provider.current_active_jobs or 0) - 1)
        provider.updated_at = now

        await order_repository.delete(session, order)

        return ArchiveResultSchema(
            archived_order=ArchivedOrderSchema.model_validate(archived),
            review=ReviewSchema.model_validate(review_row) if review_row else None,
            provider_stats=ProviderStatsSchema(
                provider_id=provider.id,
                rating=provider.rating,
                reviews_count=provider.reviews_count,
                jobs_done=provider.jobs_done,
                current_active_jobs=provider.current_active_jobs,
            ),
        )
