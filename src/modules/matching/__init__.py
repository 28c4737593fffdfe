"""
Matching module

Finds and ranks candidate providers for a request:
- Geo index adapter over geohash range queries
- Candidate filter (exclusion, category, availability, exact distance)
- Composite scorer (distance, rating, reactivity, workload)
- Radius expansion search over a ladder of radii
"""

from .candidate_filter import CandidateFilter
from .geo_index import GeoIndexAdapter, ProviderDirectory
from .radius_search import RadiusExpansionSearch, build_radius_search
from .schemas import (
    CoordinatesSchema,
    ProviderRecordSchema,
    ScoredCandidateSchema,
    SearchResultSchema,
    SubScoresSchema,
)
from .scorer import CompositeScorer

__all__ = [
    "CandidateFilter",
    "GeoIndexAdapter",
    "ProviderDirectory",
    "RadiusExpansionSearch",
    "build_radius_search",
    "CoordinatesSchema",
    "ProviderRecordSchema",
    "ScoredCandidateSchema",
    "SearchResultSchema",
    "SubScoresSchema",
    "CompositeScorer",
]
