"""
Radius Expansion Search

Runs the geo index, candidate filter and composite scorer over an
increasing ladder of radii until enough candidates are found, then returns
a ranked shortlist.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence

from src.config import settings

from .candidate_filter import CandidateFilter
from .geo_index import GeoIndexAdapter, ProviderDirectory
from .schemas import CoordinatesSchema, ScoredCandidateSchema, SearchResultSchema
from .scorer import CompositeScorer
from .utils import km_to_meters

logger = logging.getLogger(__name__)


class RadiusExpansionSearch:
    """
    Progressive radius search.

    Workflow per radius step (sequential, never concurrent):
    1. Stop if the target count is already reached
    2. Query the geo index for the radius
    3. Filter against the current exclusion set
    4. Score new candidates and add them to the exclusion set

    A failing step is skipped. Exhausting the time budget stops the ladder
    and returns what was found so far.
    """

    def __init__(
        self,
        geo_index: GeoIndexAdapter,
        candidate_filter: Optional[CandidateFilter] = None,
        scorer: Optional[CompositeScorer] = None,
        radius_ladder_km: Optional[Sequence[float]] = None,
        target_count: Optional[int] = None,
        result_limit: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.geo_index = geo_index
        self.candidate_filter = candidate_filter or CandidateFilter(
            case_sensitive=settings.category_case_sensitive
        )
        self.scorer = scorer or CompositeScorer()
        if radius_ladder_km is None:
            radius_ladder_km = settings.search_radius_ladder_km
        self.radius_ladder_km = list(radius_ladder_km)
        self.target_count = settings.search_target_count if target_count is None else target_count
        self.result_limit = settings.search_result_limit if result_limit is None else result_limit
        self.timeout_seconds = (
            settings.search_timeout_seconds if timeout_seconds is None else timeout_seconds
        )

    async def search(
        self,
        category: str,
        center: CoordinatesSchema,
        excluded_ids: Optional[Iterable[str]] = None
    ) -> SearchResultSchema:
        """
        Find and rank providers for a category around a center.

        Args:
            category: Service category
            center: Search center
            excluded_ids: Provider ids never to consider

        Returns:
            SearchResultSchema with the ranked shortlist and step diagnostics
        """
        started = time.monotonic()
        deadline = started + self.timeout_seconds

        found: Dict[str, ScoredCandidateSchema] = {}
        exclusion = set(excluded_ids or ())
        queried: List[float] = []
        failed: List[float] = []
        timed_out = False

        logger.info(
            f"Starting radius search for category={category} "
            f"with {len(exclusion)} excluded providers",
            extra={"event": "search_started", "category": category},
        )

        for radius_km in self.radius_ladder_km:
            if len(found) >= self.target_count:
                break

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                timed_out = True
                break

            queried.append(radius_km)
            try:
                records = await asyncio.wait_for(
                    self.geo_index.query_radius(center, radius_km),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                timed_out = True
                logger.warning(
                    f"Search timed out at radius {radius_km} km, "
                    f"keeping {len(found)} candidates",
                    extra={"event": "search_timeout", "radius_km": radius_km},
                )
                break
            except Exception as e:
                failed.append(radius_km)
                logger.warning(
                    f"Search step at radius {radius_km} km failed: {e}",
                    extra={"event": "search_step_failed", "radius_km": radius_km},
                )
                continue

            accepted, _ = self.candidate_filter.filter(
                records=records,
                category=category,
                center=center,
                radius_m=km_to_meters(radius_km),
                excluded_ids=exclusion,
            )

            for candidate in accepted:
                provider_id = candidate.provider.id
                if provider_id in found:
                    continue
                found[provider_id] = self.scorer.score(candidate.provider, candidate.distance_km)
                exclusion.add(provider_id)

            logger.debug(
                f"Radius {radius_km} km: {len(accepted)} new, {len(found)} total"
            )

        if queried and len(failed) == len(queried):
            logger.warning(
                f"All {len(queried)} search steps failed for category={category}",
                extra={"event": "search_all_steps_failed", "category": category},
            )

        ranked = self.rank(found.values())
        duration_ms = (time.monotonic() - started) * 1000

        result = SearchResultSchema(
            provider_ids=[c.provider.id for c in ranked],
            candidates=ranked,
            radii_queried_km=queried,
            failed_radii_km=failed,
            target_reached=len(found) >= self.target_count,
            timed_out=timed_out,
            duration_ms=round(duration_ms, 2),
        )

        logger.info(
            f"Radius search complete: {len(result.provider_ids)} providers "
            f"after {len(queried)} steps in {duration_ms:.0f}ms",
            extra={
                "event": "search_completed",
                "category": category,
                "found": len(found),
                "steps": len(queried),
                "failed_steps": len(failed),
                "timed_out": timed_out,
            },
        )
        return result

    def rank(self, candidates: Iterable[ScoredCandidateSchema]) -> List[ScoredCandidateSchema]:
        """Score descending, provider id ascending on ties, truncated to the limit."""
        ordered = sorted(candidates, key=lambda c: (-c.composite_score, c.provider.id))
        return ordered[:self.result_limit]


def build_radius_search(directory: ProviderDirectory) -> RadiusExpansionSearch:
    """Radius search wired from settings over a provider directory."""
    return RadiusExpansionSearch(geo_index=GeoIndexAdapter(directory))
