"""Tests for the Archival Transaction and the transaction runner."""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from src.config.constants import OrderStatus
from src.database.models import ArchivedOrder, Order, Provider, Review
from src.database.repositories import order_repository
from src.modules.lifecycle.archival import ArchivalTransaction, recompute_rating
from src.modules.lifecycle.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    TransactionConflictError,
)
from src.modules.lifecycle.schemas import ReviewInputSchema
from src.modules.lifecycle.transactions import run_in_transaction


class TestRecomputeRating:
    """Test suite for the running rating average."""

    def test_reference_values(self):
        assert recompute_rating(4.5, 10, 4) == (4.45, 11)

    def test_first_review(self):
        assert recompute_rating(0.0, 0, 5) == (5.0, 1)

    def test_no_review_keeps_stats(self):
        assert recompute_rating(4.2, 7, None) == (4.2, 7)

    def test_rounded_to_two_decimals(self):
        rating, count = recompute_rating(4.0, 2, 5)
        assert rating == 4.33
        assert count == 3


class TestArchivalTransaction:
    """Test suite for atomic archival."""

    @pytest.fixture(autouse=True)
    def _setup(self, session_factory, add_providers, clock):
        self.session_factory = session_factory
        self.clock = clock
        self.archival = ArchivalTransaction(session_factory, clock=clock)
        add_providers({
            "id": "P1",
            "km": 0.5,
            "rating": 4.5,
            "reviews_count": 10,
            "jobs_done": 20,
            "current_active_jobs": 1,
        })

    def run(self, coro):
        return asyncio.run(coro)

    def insert_order(self, status=OrderStatus.ASSIGNED, provider_id="P1"):
        order = Order(
            requester_id="req-1",
            category="Plumbing",
            status=status.value,
            description="Leaking sink",
            latitude=14.7167,
            longitude=-17.4677,
            contacted_provider_ids=["P1", "P2"],
            rejected_provider_ids=["P2"],
            targeted_providers=["P1", "P2"],
            assigned_provider_id=provider_id,
            assigned_price=120.0,
            assigned_at=self.clock.now,
            created_at=self.clock.now,
        )

        async def _insert():
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(order)

        self.run(_insert())
        return order.id

    def count(self, model, *criteria):
        async def _count():
            async with self.session_factory() as session:
                query = select(func.count()).select_from(model)
                for criterion in criteria:
                    query = query.where(criterion)
                return (await session.execute(query)).scalar_one()

        return self.run(_count())

    def provider(self, provider_id="P1"):
        async def _get():
            async with self.session_factory() as session:
                return await session.get(Provider, provider_id)

        return self.run(_get())

    def test_archive_with_review(self):
        order_id = self.insert_order()
        review = ReviewInputSchema(rating=4, comment="Quick fix", images=["https://img/1.jpg"])

        result = self.run(self.archival.archive(order_id, review))

        assert result.provider_stats.rating == 4.45
        assert result.provider_stats.reviews_count == 11
        assert result.provider_stats.jobs_done == 21
        assert result.provider_stats.current_active_jobs == 0

        assert result.review.id.startswith("rev-")
        assert result.archived_order.review_id == result.review.id
        assert result.archived_order.result_images == ["https://img/1.jpg"]
        assert result.archived_order.final_review == {"rating": 4, "comment": "Quick fix"}
        assert result.archived_order.completed_at == self.clock.now
        assert result.archived_order.rejected_provider_ids == ["P2"]
        assert result.archived_order.finish_requested_by == "requester"

        provider = self.provider()
        assert provider.rating == 4.45
        assert provider.reviews_count == 11
        assert provider.jobs_done == 21
        assert self.count(Order, Order.id == order_id) == 0
        assert self.count(ArchivedOrder, ArchivedOrder.id == order_id) == 1
        assert self.count(Review, Review.order_id == order_id) == 1

    def test_archive_without_review(self):
        order_id = self.insert_order(status=OrderStatus.PENDING_CLOSURE)

        result = self.run(self.archival.archive(order_id))

        assert result.review is None
        assert result.archived_order.review_id is None
        assert result.provider_stats.rating == 4.5
        assert result.provider_stats.reviews_count == 10
        assert result.provider_stats.jobs_done == 21
        assert self.count(Review) == 0

    def test_active_jobs_never_negative(self):
        first = self.insert_order()
        second = self.insert_order()

        self.run(self.archival.archive(first))
        result = self.run(self.archival.archive(second))

        assert result.provider_stats.current_active_jobs == 0
        assert result.provider_stats.jobs_done == 22

    def test_missing_provider_aborts_everything(self):
        order_id = self.insert_order(provider_id="ghost")

        with pytest.raises(NotFoundError):
            self.run(self.archival.archive(order_id, ReviewInputSchema(rating=5)))

        assert self.count(Order, Order.id == order_id) == 1
        assert self.count(ArchivedOrder) == 0
        assert self.count(Review) == 0
        assert self.provider().jobs_done == 20

    def test_failure_after_writes_rolls_everything_back(self, monkeypatch):
        order_id = self.insert_order()

        async def flush_then_fail(session, entity):
            await session.flush()
            raise RuntimeError("storage lost during delete")

        monkeypatch.setattr(order_repository, "delete", flush_then_fail)

        with pytest.raises(RuntimeError):
            self.run(self.archival.archive(order_id, ReviewInputSchema(rating=4)))

        assert self.count(ArchivedOrder) == 0
        assert self.count(Review) == 0
        assert self.count(Order, Order.id == order_id) == 1
        provider = self.provider()
        assert provider.rating == 4.5
        assert provider.reviews_count == 10
        assert provider.jobs_done == 20
        assert provider.current_active_jobs == 1

    def test_concurrent_archives_on_same_provider_lose_no_update(self):
        order_ids = [self.insert_order() for _ in range(4)]
        archival = ArchivalTransaction(self.session_factory, clock=self.clock, max_attempts=10)

        async def archive_all():
            return await asyncio.gather(
                *(archival.archive(order_id, ReviewInputSchema(rating=5)) for order_id in order_ids),
                return_exceptions=True,
            )

        results = self.run(archive_all())

        failures = [r for r in results if isinstance(r, Exception)]
        assert all(isinstance(f, TransactionConflictError) for f in failures)
        succeeded = len(results) - len(failures)
        assert succeeded >= 1

        provider = self.provider()
        assert provider.jobs_done == 20 + succeeded
        assert provider.reviews_count == 10 + succeeded
        assert provider.current_active_jobs == 0
        assert self.count(ArchivedOrder) == succeeded
        assert self.count(Review) == succeeded
        assert self.count(Order) == len(order_ids) - succeeded

    def test_missing_order(self):
        with pytest.raises(NotFoundError):
            self.run(self.archival.archive("missing"))

    def test_searching_order_cannot_be_archived(self):
        order_id = self.insert_order(status=OrderStatus.SEARCHING, provider_id=None)

        with pytest.raises(PreconditionFailedError):
            self.run(self.archival.archive(order_id))

        assert self.count(Order, Order.id == order_id) == 1

    def test_second_archive_of_same_order_fails(self):
        order_id = self.insert_order()
        self.run(self.archival.archive(order_id, ReviewInputSchema(rating=5)))

        with pytest.raises(NotFoundError):
            self.run(self.archival.archive(order_id, ReviewInputSchema(rating=1)))

        assert self.provider().reviews_count == 11


class TestRunInTransaction:
    """Test suite for the retrying transaction runner."""

    def test_returns_work_result(self, session_factory):
        async def work(session):
            return "done"

        assert asyncio.run(run_in_transaction(session_factory, work, "noop")) == "done"

    def test_conflicts_exhaust_attempts(self, session_factory):
        attempts = []

        async def work(session):
            attempts.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(TransactionConflictError) as exc_info:
            asyncio.run(run_in_transaction(session_factory, work, "always_stale", max_attempts=3))

        assert len(attempts) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.operation == "always_stale"

    def test_recovers_after_conflict(self, session_factory):
        attempts = []

        async def work(session):
            attempts.append(1)
            if len(attempts) < 2:
                raise StaleDataError("version mismatch")
            return len(attempts)

        assert asyncio.run(run_in_transaction(session_factory, work, "flaky")) == 2

    def test_other_errors_propagate(self, session_factory):
        async def work(session):
            raise NotFoundError("Order", "x")

        with pytest.raises(NotFoundError):
            asyncio.run(run_in_transaction(session_factory, work, "missing"))
