"""
Composite Scorer

Deterministic 0-100 ranking score from four weighted sub-scores:

    composite = 0.4 × distance + 0.3 × rating + 0.2 × reactivity + 0.1 × workload

rounded to one decimal.
"""

import logging
from typing import Optional

from .constants import (
    DEFAULT_MAX_CONCURRENT_JOBS,
    DEFAULT_RESPONSE_TIME_MINUTES,
    DISTANCE_PENALTY_PER_KM,
    MAX_RATING,
    MAX_SCORE,
    REACTIVITY_PENALTY_PER_MINUTE,
    SCORE_WEIGHTS,
    WORKLOAD_SCORE_BUSY,
    WORKLOAD_SCORE_FREE,
)
from .schemas import ProviderRecordSchema, ScoredCandidateSchema, SubScoresSchema

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return max(0.0, min(MAX_SCORE, value))


def distance_score(distance_km: float) -> float:
    """100 at 0 km, minus 10 per km, floored at 0."""
    return _clamp(MAX_SCORE - DISTANCE_PENALTY_PER_KM * distance_km)


def rating_score(rating: Optional[float]) -> float:
    """Rating on 5 scaled to 100."""
    return _clamp(((rating or 0.0) / MAX_RATING) * MAX_SCORE)


def reactivity_score(average_response_time_minutes: Optional[float]) -> float:
    """
    100 at 0 minutes, minus 2 per minute, floored at 0.

    Unknown responders default to 60 minutes, which scores 0.
    """
    minutes = average_response_time_minutes
    if minutes is None:
        minutes = DEFAULT_RESPONSE_TIME_MINUTES
    return _clamp(MAX_SCORE - REACTIVITY_PENALTY_PER_MINUTE * minutes)


def workload_score(current_active_jobs: Optional[int], max_concurrent_jobs: Optional[int]) -> float:
    """100 below capacity, 30 at or above it. A capacity of 0 counts as unset."""
    active = current_active_jobs or 0
    capacity = max_concurrent_jobs or DEFAULT_MAX_CONCURRENT_JOBS
    return WORKLOAD_SCORE_FREE if active < capacity else WORKLOAD_SCORE_BUSY


class CompositeScorer:
    """Scores a provider at a given distance. Pure and deterministic."""

    def __init__(self):
        self.weights = dict(SCORE_WEIGHTS)

    def sub_scores(self, provider: ProviderRecordSchema, distance_km: float) -> SubScoresSchema:
        return SubScoresSchema(
            distance_score=distance_score(distance_km),
            rating_score=rating_score(provider.rating),
            reactivity_score=reactivity_score(provider.average_response_time_minutes),
            workload_score=workload_score(
                provider.current_active_jobs, provider.max_concurrent_jobs
            ),
        )

    def composite(self, sub: SubScoresSchema) -> float:
        total = (
            self.weights["distance"] * sub.distance_score +
            self.weights["rating"] * sub.rating_score +
            self.weights["reactivity"] * sub.reactivity_score +
            self.weights["workload"] * sub.workload_score
        )
        return round(_clamp(total), 1)

    def score(self, provider: ProviderRecordSchema, distance_km: float) -> ScoredCandidateSchema:
        """
        Score a provider.

        Args:
            provider: Provider record
            distance_km: Distance from the search center in kilometers

        Returns:
            ScoredCandidateSchema with sub-scores and composite score
        """
        sub = self.sub_scores(provider, distance_km)
        composite = self.composite(sub)

        logger.debug(
            f"Provider {provider.id} scored {composite} "
            f"(d={sub.distance_score:.1f}, r={sub.rating_score:.1f}, "
            f"t={sub.reactivity_score:.1f}, w={sub.workload_score:.1f})"
        )

        return ScoredCandidateSchema(
            provider=provider,
            distance_km=distance_km,
            composite_score=composite,
            sub_scores=sub,
        )
