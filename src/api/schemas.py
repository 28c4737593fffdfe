"""
API schemas for request/response validation.

Lifecycle and matching payloads reuse the module schemas; only the
request bodies specific to the HTTP surface live here.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.modules.lifecycle.schemas import ReviewInputSchema
from src.modules.matching.schemas import CoordinatesSchema


# Request schemas
class LocationUpdateRequest(BaseModel):
    """Raw provider position; range and (0, 0) checks happen in the controller."""

    lat: float = Field(..., description="Latitude in decimal degrees")
    lng: float = Field(..., description="Longitude in decimal degrees")


class AvailabilityUpdateRequest(BaseModel):
    """Provider availability toggle."""

    available: bool = Field(..., description="Whether the provider accepts new jobs")


class ClosureRequest(BaseModel):
    """Closure requested by the assigned provider."""

    provider_id: str = Field(..., min_length=1, description="Assigned provider")


class CompleteOrderRequest(BaseModel):
    """Completion by the requester, with an optional review."""

    review: Optional[ReviewInputSchema] = None

    class Config:
        json_schema_extra = {
            "example": {
                "review": {
                    "rating": 4,
                    "comment": "Fast and clean work",
                    "images": ["https://cdn.example.com/results/123.jpg"],
                }
            }
        }


class SearchPreviewRequest(BaseModel):
    """Read-only ranked search around a location."""

    category: str = Field(..., min_length=1, description="Service category")
    location: CoordinatesSchema = Field(..., description="Search center")
    excluded_ids: List[str] = Field(default_factory=list, description="Providers to skip")

    class Config:
        json_schema_extra = {
            "example": {
                "category": "Plumbing",
                "location": {"lat": 14.7167, "lng": -17.4677},
                "excluded_ids": [],
            }
        }


# Response schemas
class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    timestamp: datetime
    services: Dict[str, bool]
    version: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    status_code: int
