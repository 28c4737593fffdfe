"""
Order Lifecycle Controller

Drives an order through SEARCHING -> ASSIGNED -> PENDING_CLOSURE -> ARCHIVED,
with SEARCHING -> CANCELLED while no quote exists.

Every transition that mutates an order is guarded by its current status in
the storage layer (conditional UPDATE/DELETE or version-checked flush), so
concurrent callers cannot both win.
"""

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.config.constants import FinishRequestedBy, OrderStatus, QuoteStatus
from src.database.connection import AsyncSessionLocal
from src.database.models import Order, Provider, Quote
from src.database.repositories import (
    ProviderRepository,
    SqlProviderDirectory,
    order_repository,
    provider_repository,
    quote_repository,
)
from src.modules.matching import (
    CoordinatesSchema,
    ProviderRecordSchema,
    RadiusExpansionSearch,
    SearchResultSchema,
    build_radius_search,
)
from src.modules.matching.geohash import encode_geohash
from src.modules.matching.utils import is_valid_location

from .archival import ArchivalTransaction
from .collaborators import (
    MessagingService,
    TriageAssistant,
    get_messaging_service,
)
from .dispatch import ReplacementDispatcher, build_dispatcher
from .exceptions import (
    DuplicateQuoteError,
    InvalidLocationError,
    NotFoundError,
    PreconditionFailedError,
)
from .schemas import (
    ArchiveResultSchema,
    OrderCreateSchema,
    OrderSchema,
    QuoteCreateSchema,
    QuoteSchema,
    ReviewInputSchema,
    UrgentOrderCreateSchema,
)
from .transactions import run_in_transaction
from .triage import classify_with_fallback

logger = logging.getLogger(__name__)


def _merge_ids(existing: Optional[List[str]], new_ids: List[str]) -> List[str]:
    """Append new ids keeping order and uniqueness. Never removes."""
    merged = list(existing or [])
    for provider_id in new_ids:
        if provider_id not in merged:
            merged.append(provider_id)
    return merged


class OrderLifecycleController:
    """
    Order state machine.

    Workflow:
    1. Create: search providers (or target one directly), order is SEARCHING
    2. Quotes: eligible providers submit pending quotes
    3. Accept one quote (ASSIGNED) or reject quotes (replacement search)
    4. Provider may request closure (PENDING_CLOSURE)
    5. Requester completes: archival transaction
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        search: Optional[RadiusExpansionSearch] = None,
        messaging: Optional[MessagingService] = None,
        triage: Optional[TriageAssistant] = None,
        dispatcher: Optional[ReplacementDispatcher] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.search = search or build_radius_search(SqlProviderDirectory(self.session_factory))
        self.messaging = messaging or get_messaging_service()
        self.triage = triage
        self.clock = clock
        self.archival = ArchivalTransaction(self.session_factory, clock=clock)
        self.dispatcher = dispatcher or build_dispatcher(self.find_replacement)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _transaction(self, operation: str, work: Callable[[AsyncSession], Awaitable]):
        return await run_in_transaction(self.session_factory, work, operation=operation)

    @staticmethod
    async def _load_order(session: AsyncSession, order_id: str) -> Order:
        order = await order_repository.get_by_id(session, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    @staticmethod
    async def _load_provider(session: AsyncSession, provider_id: str) -> Provider:
        provider = await provider_repository.get_by_id(session, provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)
        return provider

    @staticmethod
    def _require_status(order: Order, *expected: OrderStatus) -> None:
        allowed = [s.value for s in expected]
        if order.status not in allowed:
            raise PreconditionFailedError(
                f"Order {order.id} is {order.status}, expected {' or '.join(allowed)}",
                expected=allowed,
                actual=order.status,
            )

    @staticmethod
    def _center_for(order: Order) -> CoordinatesSchema:
        if is_valid_location(order.latitude, order.longitude):
            return CoordinatesSchema(lat=order.latitude, lng=order.longitude)
        return CoordinatesSchema(lat=settings.default_center_lat, lng=settings.default_center_lng)

    async def _notify(self, description: str, action: Callable[[], Awaitable]) -> None:
        """Run a side effect; failures are logged and swallowed."""
        try:
            await action()
        except Exception as e:
            logger.warning(
                f"Side effect '{description}' failed: {e}",
                extra={"event": "side_effect_failed", "side_effect": description},
            )

    async def _post_to_conversation(self, requester_id: str, provider_id: str, text: str) -> None:
        conversation_id = await self.messaging.ensure_conversation(requester_id, provider_id)
        await self.messaging.post_system_message(conversation_id, text)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(self, data: OrderCreateSchema) -> OrderSchema:
        """
        Create an order.

        Without a direct target, the radius search picks the providers to
        contact. With one, only that provider is targeted and may quote.

        Raises:
            NotFoundError: direct target provider does not exist
        """
        return await self._create(
            requester_id=data.requester_id,
            category=data.category,
            description=data.description,
            location=data.location,
            direct_provider_id=data.direct_provider_id,
        )

    async def create_urgent_order(self, data: UrgentOrderCreateSchema) -> OrderSchema:
        """Create an order whose category comes from triage (or the fallback)."""
        triage = await classify_with_fallback(self.triage, data.description, data.images)

        return await self._create(
            requester_id=data.requester_id,
            category=triage.category,
            description=data.description,
            location=data.location,
            priority=triage.priority.value,
            triage_summary=triage.summary,
            safety_advice=triage.safety_advice,
            estimated_price_range=triage.estimated_price_range,
        )

    async def _create(
        self,
        requester_id: str,
        category: str,
        description: str,
        location: Optional[CoordinatesSchema],
        direct_provider_id: Optional[str] = None,
        **extra,
    ) -> OrderSchema:
        if direct_provider_id:
            async with self.session_factory() as session:
                await self._load_provider(session, direct_provider_id)
            provider_ids = [direct_provider_id]
        else:
            center = location or CoordinatesSchema(
                lat=settings.default_center_lat, lng=settings.default_center_lng
            )
            result = await self.search.search(category, center)
            provider_ids = list(result.provider_ids)

        now = self.clock()
        order = Order(
            requester_id=requester_id,
            category=category,
            status=OrderStatus.SEARCHING.value,
            description=description,
            latitude=location.lat if location else None,
            longitude=location.lng if location else None,
            contacted_provider_ids=list(provider_ids),
            rejected_provider_ids=[],
            targeted_providers=list(provider_ids),
            search_radius_km=1.0,
            is_direct=bool(direct_provider_id),
            created_at=now,
            updated_at=now,
            **extra,
        )

        async def work(session: AsyncSession) -> OrderSchema:
            await order_repository.create(session, order)
            return OrderSchema.model_validate(order)

        created = await self._transaction("create_order", work)

        logger.info(
            f"Order {created.id} created for category={category} "
            f"with {len(provider_ids)} targeted providers",
            extra={
                "event": "order_created",
                "order_id": created.id,
                "category": category,
                "targeted": len(provider_ids),
                "is_direct": created.is_direct,
            },
        )
        return created

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def _check_quote_eligibility(
        self, session: AsyncSession, order: Order, provider_id: str
    ) -> None:
        if provider_id in (order.rejected_provider_ids or []):
            raise PreconditionFailedError(
                f"Provider {provider_id} was already rejected on order {order.id}"
            )

        if order.is_direct:
            if provider_id not in (order.targeted_providers or []):
                raise PreconditionFailedError(
                    f"Order {order.id} is reserved for another provider"
                )
            return

        if provider_id in (order.contacted_provider_ids or []):
            return

        provider = await self._load_provider(session, provider_id)
        if not self.search.candidate_filter.matches_category(provider.category, order.category):
            raise PreconditionFailedError(
                f"Provider {provider_id} was not contacted and does not serve {order.category}"
            )

    async def submit_quote(self, order_id: str, data: QuoteCreateSchema) -> QuoteSchema:
        """
        Add a pending quote. The order itself is not modified.

        Raises:
            NotFoundError: order missing
            PreconditionFailedError: order not SEARCHING or provider not eligible
            DuplicateQuoteError: provider already has an open quote
        """

        async def work(session: AsyncSession) -> QuoteSchema:
            order = await self._load_order(session, order_id)
            self._require_status(order, OrderStatus.SEARCHING)
            await self._check_quote_eligibility(session, order, data.provider_id)

            if await quote_repository.has_open_quote(session, order_id, data.provider_id):
                raise DuplicateQuoteError(
                    f"Provider {data.provider_id} already has an open quote on order {order_id}"
                )

            quote = Quote(
                order_id=order_id,
                provider_id=data.provider_id,
                price=data.price,
                description=data.description,
                status=QuoteStatus.PENDING.value,
                timestamp=self.clock(),
            )
            await quote_repository.create(session, quote)
            return QuoteSchema.model_validate(quote)

        quote = await self._transaction("submit_quote", work)

        logger.info(
            f"Quote {quote.id} submitted by {quote.provider_id} on order {order_id}",
            extra={"event": "quote_submitted", "order_id": order_id, "quote_id": quote.id},
        )
        return quote

    async def list_quotes(self, order_id: str, include_rejected: bool = True) -> List[QuoteSchema]:
        async with self.session_factory() as session:
            await self._load_order(session, order_id)
            quotes = await quote_repository.list_for_order(session, order_id, include_rejected)
            return [QuoteSchema.model_validate(q) for q in quotes]

    async def accept_quote(self, order_id: str, quote_id: str) -> OrderSchema:
        """
        Assign the order to the quote's provider.

        Only succeeds if the order is still SEARCHING and the quote still
        pending at write time; the losing side of a race gets
        PreconditionFailedError.
        """
        now = self.clock()

        async def work(session: AsyncSession) -> OrderSchema:
            quote = await quote_repository.get_by_id(session, quote_id)
            if quote is None or quote.order_id != order_id:
                raise NotFoundError("Quote", quote_id)

            assigned = await order_repository.update_if_status(
                session,
                order_id,
                [OrderStatus.SEARCHING.value],
                {
                    "status": OrderStatus.ASSIGNED.value,
                    "assigned_provider_id": quote.provider_id,
                    "assigned_price": quote.price,
                    "assigned_at": now,
                },
            )
            if not assigned:
                order = await self._load_order(session, order_id)
                raise PreconditionFailedError(
                    f"Order {order_id} is no longer open for assignment",
                    expected=[OrderStatus.SEARCHING.value],
                    actual=order.status,
                )

            accepted = await quote_repository.set_status_if_pending(
                session, quote_id, order_id, QuoteStatus.ACCEPTED, accepted_at=now
            )
            if not accepted:
                raise PreconditionFailedError(
                    f"Quote {quote_id} is no longer pending",
                    expected=[QuoteStatus.PENDING.value],
                    actual=quote.status,
                )

            order = await self._load_order(session, order_id)
            return OrderSchema.model_validate(order)

        order = await self._transaction("accept_quote", work)

        logger.info(
            f"Order {order_id} assigned to {order.assigned_provider_id} "
            f"at price {order.assigned_price}",
            extra={
                "event": "order_assigned",
                "order_id": order_id,
                "provider_id": order.assigned_provider_id,
            },
        )

        await self._notify(
            "quote_accepted_message",
            lambda: self._post_to_conversation(
                order.requester_id,
                order.assigned_provider_id,
                f"Quote accepted for order {order_id} at {order.assigned_price}.",
            ),
        )
        return order

    async def reject_quote(self, order_id: str, quote_id: str) -> QuoteSchema:
        """
        Reject a pending quote and schedule a replacement search.

        The replacement runs in the background; its outcome never affects
        this call.
        """
        now = self.clock()

        async def work(session: AsyncSession) -> QuoteSchema:
            order = await self._load_order(session, order_id)
            self._require_status(order, OrderStatus.SEARCHING)

            quote = await quote_repository.get_by_id(session, quote_id)
            if quote is None or quote.order_id != order_id:
                raise NotFoundError("Quote", quote_id)

            rejected = await quote_repository.set_status_if_pending(
                session, quote_id, order_id, QuoteStatus.REJECTED, rejected_at=now
            )
            if not rejected:
                raise PreconditionFailedError(
                    f"Quote {quote_id} is no longer pending",
                    expected=[QuoteStatus.PENDING.value],
                    actual=quote.status,
                )

            order.rejected_provider_ids = _merge_ids(order.rejected_provider_ids, [quote.provider_id])
            order.updated_at = now
            await session.flush()

            return QuoteSchema.model_validate(quote).model_copy(
                update={"status": QuoteStatus.REJECTED, "rejected_at": now}
            )

        quote = await self._transaction("reject_quote", work)

        logger.info(
            f"Quote {quote_id} from {quote.provider_id} rejected on order {order_id}",
            extra={"event": "quote_rejected", "order_id": order_id, "provider_id": quote.provider_id},
        )

        try:
            self.dispatcher.dispatch(order_id)
        except Exception as e:
            logger.warning(
                f"Could not schedule replacement search for order {order_id}: {e}",
                extra={"event": "side_effect_failed", "side_effect": "replacement_dispatch"},
            )
        return quote

    async def find_replacement(self, order_id: str) -> Optional[str]:
        """
        Look for one new provider for a SEARCHING order.

        Excludes every contacted or rejected provider. Returns the id that
        was appended, or None when the order moved on or nobody was found.
        """
        async with self.session_factory() as session:
            order = await order_repository.get_by_id(session, order_id)

        if order is None or order.status != OrderStatus.SEARCHING.value:
            logger.info(
                f"Replacement search skipped for order {order_id}: no longer searching",
                extra={"event": "replacement_skipped", "order_id": order_id},
            )
            return None

        excluded = set(order.contacted_provider_ids or []) | set(order.rejected_provider_ids or [])
        result = await self.search.search(order.category, self._center_for(order), excluded)

        if not result.provider_ids:
            logger.info(
                f"No replacement provider found for order {order_id}",
                extra={"event": "replacement_not_found", "order_id": order_id},
            )
            return None

        replacement_id = result.provider_ids[0]

        async def work(session: AsyncSession) -> Optional[str]:
            current = await self._load_order(session, order_id)
            if current.status != OrderStatus.SEARCHING.value:
                return None
            current.contacted_provider_ids = _merge_ids(current.contacted_provider_ids, [replacement_id])
            current.targeted_providers = _merge_ids(current.targeted_providers, [replacement_id])
            current.updated_at = self.clock()
            await session.flush()
            return replacement_id

        appended = await self._transaction("append_replacement", work)

        logger.info(
            f"Replacement for order {order_id}: {appended}",
            extra={"event": "replacement_found", "order_id": order_id, "provider_id": appended},
        )
        return appended

    # ------------------------------------------------------------------
    # Radius expansion
    # ------------------------------------------------------------------

    def _check_expansion_allowed(self, order: Order) -> None:
        self._require_status(order, OrderStatus.SEARCHING)

        if order.is_direct:
            raise PreconditionFailedError(f"Order {order.id} targets a single provider")

        if (order.search_radius_km or 0) >= settings.manual_expansion_radius_km:
            raise PreconditionFailedError(f"Order {order.id} was already expanded")

        delay = timedelta(minutes=settings.manual_expansion_delay_minutes)
        if self.clock() - order.created_at < delay:
            raise PreconditionFailedError(
                f"Order {order.id} can be expanded {settings.manual_expansion_delay_minutes} "
                f"minutes after creation"
            )

    async def expand_radius(self, order_id: str) -> OrderSchema:
        """
        One-time manual expansion after the waiting delay.

        New providers are merged into the targeted and contacted sets and
        the order's radius is recorded as the expansion radius.
        """
        async with self.session_factory() as session:
            order = await self._load_order(session, order_id)
        self._check_expansion_allowed(order)

        excluded = set(order.contacted_provider_ids or []) | set(order.rejected_provider_ids or [])
        result: SearchResultSchema = await self.search.search(
            order.category, self._center_for(order), excluded
        )

        async def work(session: AsyncSession) -> OrderSchema:
            current = await self._load_order(session, order_id)
            self._check_expansion_allowed(current)
            current.targeted_providers = _merge_ids(current.targeted_providers, result.provider_ids)
            current.contacted_provider_ids = _merge_ids(current.contacted_provider_ids, result.provider_ids)
            current.search_radius_km = settings.manual_expansion_radius_km
            current.updated_at = self.clock()
            await session.flush()
            return OrderSchema.model_validate(current)

        expanded = await self._transaction("expand_radius", work)

        logger.info(
            f"Order {order_id} expanded with {len(result.provider_ids)} new providers",
            extra={"event": "order_expanded", "order_id": order_id, "added": len(result.provider_ids)},
        )
        return expanded

    # ------------------------------------------------------------------
    # Closure
    # ------------------------------------------------------------------

    async def request_closure(self, order_id: str, provider_id: str) -> OrderSchema:
        """Assigned provider marks the job finished: ASSIGNED -> PENDING_CLOSURE."""

        async def work(session: AsyncSession) -> OrderSchema:
            order = await self._load_order(session, order_id)
            self._require_status(order, OrderStatus.ASSIGNED)
            if order.assigned_provider_id != provider_id:
                raise PreconditionFailedError(
                    f"Provider {provider_id} is not assigned to order {order_id}"
                )

            order.status = OrderStatus.PENDING_CLOSURE.value
            order.finish_requested_by = FinishRequestedBy.PROVIDER.value
            order.updated_at = self.clock()
            await session.flush()
            return OrderSchema.model_validate(order)

        order = await self._transaction("request_closure", work)

        logger.info(
            f"Closure requested on order {order_id} by provider {provider_id}",
            extra={"event": "closure_requested", "order_id": order_id},
        )
        return order

    async def complete_order(
        self, order_id: str, review: Optional[ReviewInputSchema] = None
    ) -> ArchiveResultSchema:
        """Requester completes the order; runs the archival transaction."""
        result = await self.archival.archive(order_id, review)
        archived = result.archived_order

        text = f"Order {order_id} completed."
        if review is not None:
            text = f"Order {order_id} completed and rated {review.rating}/5."

        await self._notify(
            "order_completed_message",
            lambda: self._post_to_conversation(
                archived.requester_id, archived.assigned_provider_id, text
            ),
        )
        return result

    async def cancel_order(self, order_id: str) -> OrderSchema:
        """
        Cancel a SEARCHING order that has no quote. The record is deleted.

        Raises:
            NotFoundError: order missing
            PreconditionFailedError: order has quotes or is past SEARCHING
        """

        async def work(session: AsyncSession) -> OrderSchema:
            order = await self._load_order(session, order_id)
            snapshot = OrderSchema.model_validate(order)

            deleted = await order_repository.delete_if_quoteless(
                session, order_id, OrderStatus.SEARCHING.value
            )
            if not deleted:
                self._require_status(order, OrderStatus.SEARCHING)
                quotes = await quote_repository.count_for_order(session, order_id)
                raise PreconditionFailedError(
                    f"Order {order_id} has {quotes} quote(s) and cannot be cancelled"
                )
            return snapshot.model_copy(
                update={"status": OrderStatus.CANCELLED, "updated_at": self.clock()}
            )

        cancelled = await self._transaction("cancel_order", work)

        logger.info(
            f"Order {order_id} cancelled",
            extra={"event": "order_cancelled", "order_id": order_id},
        )
        return cancelled

    async def get_order(self, order_id: str) -> OrderSchema:
        async with self.session_factory() as session:
            order = await self._load_order(session, order_id)
            return OrderSchema.model_validate(order)

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def update_provider_location(
        self, provider_id: str, lat: float, lng: float
    ) -> ProviderRecordSchema:
        """
        Store a new position and its geohash.

        Raises:
            InvalidLocationError: (0, 0) or coordinates out of range
            NotFoundError: unknown provider
        """
        if not is_valid_location(lat, lng):
            raise InvalidLocationError(f"Invalid location ({lat}, {lng})")

        async def work(session: AsyncSession) -> ProviderRecordSchema:
            provider = await self._load_provider(session, provider_id)
            provider.latitude = lat
            provider.longitude = lng
            provider.geohash = encode_geohash(lat, lng)
            provider.updated_at = self.clock()
            await session.flush()
            return ProviderRepository.to_record(provider)

        record = await self._transaction("update_provider_location", work)

        logger.info(
            f"Provider {provider_id} moved to geohash {record.geohash}",
            extra={"event": "provider_location_updated", "provider_id": provider_id},
        )
        return record

    async def set_provider_availability(self, provider_id: str, available: bool) -> ProviderRecordSchema:
        async def work(session: AsyncSession) -> ProviderRecordSchema:
            provider = await self._load_provider(session, provider_id)
            provider.available = available
            provider.updated_at = self.clock()
            await session.flush()
            return ProviderRepository.to_record(provider)

        record = await self._transaction("set_provider_availability", work)
        logger.info(f"Provider {provider_id} availability set to {available}")
        return record

    async def preview_search(
        self,
        category: str,
        location: CoordinatesSchema,
        excluded_ids: Optional[List[str]] = None,
    ) -> SearchResultSchema:
        """Ranked shortlist without creating or touching any order."""
        return await self.search.search(category, location, excluded_ids)


_controller_instance: Optional[OrderLifecycleController] = None


def get_controller() -> OrderLifecycleController:
    """
    Get singleton instance of OrderLifecycleController.

    Used for dependency injection in FastAPI routes.
    """
    global _controller_instance

    if _controller_instance is None:
        _controller_instance = OrderLifecycleController()
        logger.info("Order lifecycle controller instance created")

    return _controller_instance
