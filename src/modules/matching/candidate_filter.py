"""
Candidate Filter

Applies exclusion, category, availability and exact-distance rules to raw
geo index results.
"""

import logging
from typing import Any, Dict, Iterable, List, Set, Tuple

from .schemas import CandidateSchema, CoordinatesSchema, ProviderRecordSchema
from .utils import haversine_distance_m, is_valid_location

logger = logging.getLogger(__name__)


class CandidateFilter:
    """
    Filters provider records for a search step.

    A provider P is eligible if:
    - P.id is not in the exclusion set
    - P.category matches the requested category
    - P.available is True
    - P has a real location (not missing, not (0, 0))
    - haversine(center, P.location) ≤ radius
    """

    def __init__(self, case_sensitive: bool = False):
        """
        Args:
            case_sensitive: Compare categories exactly instead of casefolded
        """
        self.case_sensitive = case_sensitive

    def matches_category(self, left: str, right: str) -> bool:
        if self.case_sensitive:
            return left == right
        return left.casefold() == right.casefold()

    def filter(
        self,
        records: Iterable[ProviderRecordSchema],
        category: str,
        center: CoordinatesSchema,
        radius_m: float,
        excluded_ids: Set[str]
    ) -> Tuple[List[CandidateSchema], List[Dict[str, Any]]]:
        """
        Filter provider records.

        Args:
            records: Raw records from the geo index
            category: Target category
            center: Search center
            radius_m: Search radius in meters
            excluded_ids: Provider ids never to consider

        Returns:
            Tuple of:
            - Accepted candidates with exact distance
            - Rejected providers with reasons
        """
        accepted: List[CandidateSchema] = []
        rejected: List[Dict[str, Any]] = []

        for record in records:
            if record.id in excluded_ids:
                rejected.append({"provider_id": record.id, "reason": "excluded"})
                continue

            if not self.matches_category(record.category, category):
                rejected.append({"provider_id": record.id, "reason": "category_mismatch"})
                continue

            if record.available is not True:
                rejected.append({"provider_id": record.id, "reason": "unavailable"})
                continue

            location = record.location
            if location is None or not is_valid_location(location.lat, location.lng):
                rejected.append({"provider_id": record.id, "reason": "no_location"})
                continue

            distance_m = haversine_distance_m(
                center.lat, center.lng, location.lat, location.lng
            )
            if distance_m > radius_m:
                rejected.append({
                    "provider_id": record.id,
                    "reason": "out_of_radius",
                    "distance_m": round(distance_m, 1),
                    "radius_m": radius_m,
                })
                continue

            accepted.append(CandidateSchema(provider=record, distance_m=distance_m))

        logger.debug(
            f"Candidate filter: {len(accepted)} accepted, {len(rejected)} rejected "
            f"(category={category}, radius={radius_m:.0f} m)"
        )
        return accepted, rejected
