"""
Pydantic schemas for the matching module.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .utils import is_null_island


class CoordinatesSchema(BaseModel):
    """Geographic point. (0, 0) is rejected as an unset location."""
    lat: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")

    @field_validator("lng")
    @classmethod
    def reject_null_island(cls, v, info):
        if is_null_island(info.data.get("lat"), v):
            raise ValueError("Coordinates (0, 0) are not a valid location")
        return v


class ProviderRecordSchema(BaseModel):
    """Provider as returned by a directory range query."""
    id: str = Field(..., description="Provider identifier")
    category: str = Field(..., description="Service category")
    available: bool = Field(default=False)
    rating: float = Field(default=0.0, ge=0, le=5)
    location: Optional[CoordinatesSchema] = Field(None, description="Last known position")
    geohash: Optional[str] = None
    average_response_time_minutes: Optional[float] = Field(None, ge=0)
    current_active_jobs: Optional[int] = Field(None, ge=0)
    max_concurrent_jobs: Optional[int] = Field(None, ge=0)


class CandidateSchema(BaseModel):
    """Provider accepted by the candidate filter, with its exact distance."""
    provider: ProviderRecordSchema
    distance_m: float = Field(..., ge=0)

    @property
    def distance_km(self) -> float:
        return self.distance_m / 1000.0


class SubScoresSchema(BaseModel):
    """Per-criterion scores, each in [0, 100]."""
    distance_score: float = Field(..., ge=0, le=100)
    rating_score: float = Field(..., ge=0, le=100)
    reactivity_score: float = Field(..., ge=0, le=100)
    workload_score: float = Field(..., ge=0, le=100)


class ScoredCandidateSchema(BaseModel):
    """Provider decorated with distance and ranking score. Never persisted."""
    provider: ProviderRecordSchema
    distance_km: float = Field(..., ge=0)
    composite_score: float = Field(..., ge=0, le=100)
    sub_scores: SubScoresSchema

    @property
    def provider_id(self) -> str:
        return self.provider.id


class SearchResultSchema(BaseModel):
    """Outcome of a radius expansion search."""
    provider_ids: List[str] = Field(default_factory=list, description="Ranked shortlist")
    candidates: List[ScoredCandidateSchema] = Field(default_factory=list)
    radii_queried_km: List[float] = Field(default_factory=list)
    failed_radii_km: List[float] = Field(default_factory=list)
    target_reached: bool = False
    timed_out: bool = False
    duration_ms: float = 0.0

    @property
    def all_steps_failed(self) -> bool:
        return bool(self.radii_queried_km) and len(self.failed_radii_km) == len(self.radii_queried_km)
