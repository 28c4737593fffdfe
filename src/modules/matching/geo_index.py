"""
Geo Index Adapter

Turns a (center, radius) query into geohash range scans against a provider
directory and returns the union of matching records. No ranking or
filtering happens here.
"""

import asyncio
import logging
from typing import List, Protocol

from .geohash import geohash_query_bounds
from .schemas import CoordinatesSchema, ProviderRecordSchema
from .utils import km_to_meters

logger = logging.getLogger(__name__)


class ProviderDirectory(Protocol):
    """Read-only directory supporting geohash range queries."""

    async def range_query(self, start: str, end: str) -> List[ProviderRecordSchema]:
        """Providers whose geohash lies in [start, end], ordered by geohash."""
        ...


class GeoIndexAdapter:
    """Issues one directory range query per geohash interval."""

    def __init__(self, directory: ProviderDirectory):
        self.directory = directory

    async def query_radius(
        self,
        center: CoordinatesSchema,
        radius_km: float
    ) -> List[ProviderRecordSchema]:
        """
        Fetch providers whose geohash falls in the bounds of a disc.

        Args:
            center: Center of the disc
            radius_km: Radius in kilometers

        Returns:
            Provider records from all intervals, deduplicated by id
        """
        bounds = geohash_query_bounds(center.lat, center.lng, km_to_meters(radius_km))

        batches = await asyncio.gather(
            *(self.directory.range_query(start, end) for start, end in bounds)
        )

        records: List[ProviderRecordSchema] = []
        seen = set()
        for batch in batches:
            for record in batch:
                if record.id in seen:
                    continue
                seen.add(record.id)
                records.append(record)

        logger.debug(
            f"Geo index: {len(records)} providers in {len(bounds)} ranges "
            f"around ({center.lat:.5f}, {center.lng:.5f}) r={radius_km} km"
        )
        return records
