"""
Provider API endpoints: location, availability and search preview.
"""

import logging

from fastapi import APIRouter, Depends

from src.api.dependencies import get_controller_dep
from src.api.errors import http_error
from src.api.schemas import (
    AvailabilityUpdateRequest,
    ErrorResponse,
    LocationUpdateRequest,
    SearchPreviewRequest,
)
from src.modules.lifecycle import LifecycleError, OrderLifecycleController
from src.modules.matching import ProviderRecordSchema, SearchResultSchema

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put(
    "/{provider_id}/location",
    response_model=ProviderRecordSchema,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid coordinates"},
        404: {"model": ErrorResponse, "description": "Provider not found"},
    },
    summary="Update provider location",
    description="Stores the position and its 10-character geohash. (0, 0) and out-of-range coordinates get a 400.",
)
async def update_location(
    provider_id: str,
    request: LocationUpdateRequest,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> ProviderRecordSchema:
    try:
        return await controller.update_provider_location(provider_id, request.lat, request.lng)
    except LifecycleError as e:
        raise http_error(e) from e


@router.put(
    "/{provider_id}/availability",
    response_model=ProviderRecordSchema,
    responses={404: {"model": ErrorResponse, "description": "Provider not found"}},
)
async def update_availability(
    provider_id: str,
    request: AvailabilityUpdateRequest,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> ProviderRecordSchema:
    try:
        return await controller.set_provider_availability(provider_id, request.available)
    except LifecycleError as e:
        raise http_error(e) from e


@router.post(
    "/search",
    response_model=SearchResultSchema,
    summary="Preview a provider search",
    description="""
    Runs the radius expansion search without touching any order.

    **Scoring (0-100):**
    - Distance 40%: 100 - 10 x km
    - Rating 30%: rating / 5 x 100
    - Reactivity 20%: 100 - 2 x average response minutes (unknown = 60)
    - Workload 10%: 100 below max concurrent jobs, else 30
    """,
)
async def search_providers(
    request: SearchPreviewRequest,
    controller: OrderLifecycleController = Depends(get_controller_dep),
) -> SearchResultSchema:
    logger.info(f"Search preview for category={request.category}")
    return await controller.preview_search(
        request.category, request.location, request.excluded_ids
    )
