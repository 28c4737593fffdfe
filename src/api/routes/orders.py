"""
Order lifecycle API endpoints.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import get_controller_dep
from src.api.errors import http_error
from src.api.schemas import ClosureRequest, CompleteOrderRequest, ErrorResponse
from src.modules.lifecycle import (
    ArchiveResultSchema,
    LifecycleError,
    OrderCreateSchema,
    OrderLifecycleController,
    OrderSchema,
    QuoteCreateSchema,
    QuoteSchema,
    UrgentOrderCreateSchema,
)

logger = logging.getLogger(__name__)
router = APIRouter()

ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Order, quote or provider not found"},
    409: {"model": ErrorResponse, "description": "Order is no longer in the expected state"},
    503: {"model": ErrorResponse, "description": "Too many concurrent writers, retry later"},
}


@router.post(
    "",
    response_model=OrderSchema,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Create an order",
    description="""
    Creates an order in SEARCHING state.

    Without `direct_provider_id`, the radius search (1, 2, 4, 8, 15, 30 km)
    selects up to 10 providers, who become the targeted and contacted set.
    With it, only that provider is targeted.
    """,
)
async def create_order(
    request: OrderCreateSchema,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> OrderSchema:
    try:
        return await controller.create_order(request)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/urgent",
    response_model=OrderSchema,
    status_code=status.HTTP_201_CREATED,
    summary="Create an urgent order",
    description="Classifies the request with the triage assistant, or a fixed fallback, then searches providers.",
)
async def create_urgent_order(
    request: UrgentOrderCreateSchema,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> OrderSchema:
    try:
        return await controller.create_urgent_order(request)
    except LifecycleError as e:
        raise http_error(e) from e


@router.get("/{order_id}", response_model=OrderSchema, responses=ERROR_RESPONSES)
async def get_order(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> OrderSchema:
    try:
        return await controller.get_order(order_id)
    except LifecycleError as e:
        raise http_error(e) from e


@router.delete(
    "/{order_id}",
    response_model=OrderSchema,
    responses=ERROR_RESPONSES,
    summary="Cancel an order",
    description="Only allowed while SEARCHING with no quote received. The order is deleted.",
)
async def cancel_order(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> OrderSchema:
    try:
        return await controller.cancel_order(order_id)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/{order_id}/quotes",
    response_model=QuoteSchema,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Submit a quote",
)
async def submit_quote(
    order_id: str,
    request: QuoteCreateSchema,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> QuoteSchema:
    try:
        return await controller.submit_quote(order_id, request)
    except LifecycleError as e:
        raise http_error(e) from e


@router.get("/{order_id}/quotes", response_model=List[QuoteSchema], responses=ERROR_RESPONSES)
async def list_quotes(
    order_id: str,
    include_rejected: bool = Query(default=True, description="Include rejected quotes"),
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> List[QuoteSchema]:
    try:
        return await controller.list_quotes(order_id, include_rejected)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/{order_id}/quotes/{quote_id}/accept",
    response_model=OrderSchema,
    responses=ERROR_RESPONSES,
    summary="Accept a quote",
    description="Assigns the order. Fails with 409 if another quote was accepted first.",
)
async def accept_quote(
    order_id: str,
    quote_id: str,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> OrderSchema:
    try:
        return await controller.accept_quote(order_id, quote_id)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/{order_id}/quotes/{quote_id}/reject",
    response_model=QuoteSchema,
    responses=ERROR_RESPONSES,
    summary="Reject a quote",
    description="Rejects the quote and schedules a replacement search in the background.",
)
async def reject_quote(
    order_id: str,
    quote_id: str,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> QuoteSchema:
    try:
        return await controller.reject_quote(order_id, quote_id)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/{order_id}/expand",
    response_model=OrderSchema,
    responses=ERROR_RESPONSES,
    summary="Expand the search radius",
    description="One manual expansion to 2 km, allowed 30 minutes after creation while SEARCHING.",
)
async def expand_radius(
    order_id: str,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> OrderSchema:
    try:
        return await controller.expand_radius(order_id)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/{order_id}/closure-request",
    response_model=OrderSchema,
    responses=ERROR_RESPONSES,
    summary="Request closure",
    description="The assigned provider marks the job finished (PENDING_CLOSURE).",
)
async def request_closure(
    order_id: str,
    request: ClosureRequest,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> OrderSchema:
    try:
        return await controller.request_closure(order_id, request.provider_id)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/{order_id}/complete",
    response_model=ArchiveResultSchema,
    responses=ERROR_RESPONSES,
    summary="Complete and archive an order",
    description="""
    Runs the archival transaction: review, archive record, provider stats
    and deletion of the active order commit together or not at all.
    """,
)
async def complete_order(
    order_id: str,
    request: CompleteOrderRequest,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> ArchiveResultSchema:
    logger.info(f"Completion requested for order {order_id}")

    try:
        return await controller.complete_order(order_id, request.review)
    except LifecycleError as e:
        raise http_error(e) from e
    except Exception as e:
        logger.error(f"Archival error for order {order_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {str(e)}"
        )
