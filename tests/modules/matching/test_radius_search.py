"""Tests for the Radius Expansion Search."""

import asyncio
import math

import pytest

from src.modules.matching.geo_index import GeoIndexAdapter
from src.modules.matching.geohash import encode_geohash
from src.modules.matching.radius_search import RadiusExpansionSearch
from src.modules.matching.schemas import CoordinatesSchema, ProviderRecordSchema

CENTER = CoordinatesSchema(lat=14.7167, lng=-17.4677)
METERS_PER_DEGREE = 6_371_000 * math.pi / 180


class InMemoryDirectory:
    """Provider directory answering geohash range queries from a list."""

    def __init__(self, records):
        self.records = sorted(records, key=lambda r: r.geohash)
        self.queries = []

    async def range_query(self, start, end):
        self.queries.append((start, end))
        return [r for r in self.records if start <= r.geohash <= end]


class RecordingGeoIndex(GeoIndexAdapter):
    """Geo index remembering which radii were queried, optionally failing some."""

    def __init__(self, directory, failing_radii=(), delay_seconds=0.0):
        super().__init__(directory)
        self.radii = []
        self.failing_radii = set(failing_radii)
        self.delay_seconds = delay_seconds

    async def query_radius(self, center, radius_km):
        self.radii.append(radius_km)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if radius_km in self.failing_radii:
            raise ConnectionError(f"directory unavailable at {radius_km} km")
        return await super().query_radius(center, radius_km)


def provider_at(provider_id, km, **overrides):
    """Provider ``km`` kilometers north of the center."""
    lat = CENTER.lat + (km * 1000) / METERS_PER_DEGREE
    values = {
        "id": provider_id,
        "category": "Plumbing",
        "available": True,
        "rating": 4.0,
        "location": CoordinatesSchema(lat=lat, lng=CENTER.lng),
        "geohash": encode_geohash(lat, CENTER.lng),
        "average_response_time_minutes": 30,
        "current_active_jobs": 0,
        "max_concurrent_jobs": 3,
    }
    values.update(overrides)
    return ProviderRecordSchema(**values)


class TestRadiusExpansionSearch:
    """Test suite for the radius ladder."""

    def build(self, records, **kwargs):
        geo_kwargs = {
            key: kwargs.pop(key) for key in ("failing_radii", "delay_seconds") if key in kwargs
        }
        self.geo_index = RecordingGeoIndex(InMemoryDirectory(records), **geo_kwargs)
        kwargs.setdefault("radius_ladder_km", [1, 2, 4, 8, 15, 30])
        kwargs.setdefault("target_count", 10)
        kwargs.setdefault("result_limit", 10)
        kwargs.setdefault("timeout_seconds", 5.0)
        return RadiusExpansionSearch(geo_index=self.geo_index, **kwargs)

    def run(self, search, category="Plumbing", excluded=None):
        return asyncio.run(search.search(category, CENTER, excluded))

    def test_stops_once_target_reached(self):
        records = [provider_at(f"P{i:02d}", 0.1 + i * 0.05) for i in range(10)]
        records.append(provider_at("FAR", 3.0))
        search = self.build(records)

        result = self.run(search)

        assert self.geo_index.radii == [1]
        assert result.target_reached is True
        assert len(result.provider_ids) == 10

    def test_zero_result_limit_is_honoured(self):
        search = self.build([provider_at("P1", 0.5)], result_limit=0)

        result = self.run(search)

        assert result.provider_ids == []
        assert self.geo_index.radii == [1, 2, 4, 8, 15, 30]

    def test_zero_target_count_queries_nothing(self):
        search = self.build([provider_at("P1", 0.5)], target_count=0)

        result = self.run(search)

        assert self.geo_index.radii == []
        assert result.target_reached is True
        assert "FAR" not in result.provider_ids

    def test_expands_until_providers_found(self):
        search = self.build([provider_at("P1", 3.0), provider_at("P2", 10.0)])

        result = self.run(search)

        assert self.geo_index.radii == [1, 2, 4, 8, 15, 30]
        assert result.provider_ids == ["P1", "P2"]
        assert result.target_reached is False

    def test_no_duplicates_across_steps(self):
        search = self.build([provider_at("P1", 0.5), provider_at("P2", 1.5)])

        result = self.run(search)

        assert sorted(result.provider_ids) == ["P1", "P2"]
        assert len(result.candidates) == len(set(result.provider_ids))

    def test_candidate_scored_at_first_radius(self):
        search = self.build([provider_at("P1", 0.5)])

        result = self.run(search)

        assert result.candidates[0].distance_km == pytest.approx(0.5, rel=1e-3)

    def test_initial_exclusions_respected(self):
        search = self.build([provider_at("P1", 0.5), provider_at("P2", 0.6)])

        result = self.run(search, excluded=["P1"])

        assert result.provider_ids == ["P2"]

    def test_ranked_by_score_descending(self):
        records = [
            provider_at("NEAR", 0.2, rating=4.0),
            provider_at("FAR", 5.0, rating=5.0),
            provider_at("MID", 1.5, rating=4.5),
        ]
        search = self.build(records)

        result = self.run(search)

        scores = [c.composite_score for c in result.candidates]
        assert scores == sorted(scores, reverse=True)
        assert result.provider_ids[0] == "NEAR"

    def test_ties_broken_by_provider_id(self):
        records = [provider_at("b-provider", 0.5), provider_at("a-provider", 0.5)]
        search = self.build(records)

        result = self.run(search)

        assert result.candidates[0].composite_score == result.candidates[1].composite_score
        assert result.provider_ids == ["a-provider", "b-provider"]

    def test_result_limit(self):
        records = [provider_at(f"P{i:02d}", 0.1 + i * 0.02) for i in range(15)]
        search = self.build(records, target_count=20, result_limit=10)

        result = self.run(search)

        assert len(result.provider_ids) == 10

    def test_failed_step_is_skipped(self):
        search = self.build([provider_at("P1", 0.5), provider_at("P2", 1.5)], failing_radii=[1])

        result = self.run(search)

        assert result.failed_radii_km == [1]
        assert sorted(result.provider_ids) == ["P1", "P2"]
        assert result.all_steps_failed is False

    def test_all_steps_failing_returns_empty(self):
        ladder = [1, 2, 4]
        search = self.build(
            [provider_at("P1", 0.5)], radius_ladder_km=ladder, failing_radii=ladder
        )

        result = self.run(search)

        assert result.provider_ids == []
        assert result.all_steps_failed is True

    def test_timeout_returns_what_was_found(self):
        search = self.build(
            [provider_at("P1", 0.5)], delay_seconds=0.2, timeout_seconds=0.05
        )

        result = self.run(search)

        assert result.timed_out is True
        assert result.provider_ids == []
        assert len(self.geo_index.radii) == 1

    def test_zero_timeout_is_already_expired(self):
        search = self.build([provider_at("P1", 0.5)], timeout_seconds=0)

        result = self.run(search)

        assert result.timed_out is True
        assert self.geo_index.radii == []

    def test_category_filtering(self):
        search = self.build([provider_at("P1", 0.5, category="Electricity")])

        result = self.run(search)

        assert result.provider_ids == []
