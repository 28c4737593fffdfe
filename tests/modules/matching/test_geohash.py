"""Tests for geohash encoding and query bounds."""

import math

import pytest

from src.modules.matching.geohash import encode_geohash, geohash_query_bounds
from src.modules.matching.utils import haversine_distance_m


def _in_bounds(geohash, bounds):
    return any(start <= geohash <= end for start, end in bounds)


class TestEncodeGeohash:
    """Test suite for geohash encoding."""

    def test_known_value(self):
        assert encode_geohash(57.64911, 10.40744, 11) == "u4pruydqqvj"

    def test_default_precision_is_ten(self):
        assert len(encode_geohash(14.7167, -17.4677)) == 10

    def test_prefix_is_stable_across_precisions(self):
        full = encode_geohash(14.7167, -17.4677, 10)
        assert encode_geohash(14.7167, -17.4677, 5) == full[:5]

    def test_invalid_latitude(self):
        with pytest.raises(ValueError):
            encode_geohash(91.0, 0.5)

    def test_invalid_longitude(self):
        with pytest.raises(ValueError):
            encode_geohash(10.0, 181.0)


class TestGeohashQueryBounds:
    """Test suite for radius query bounds."""

    def setup_method(self):
        self.lat = 14.7167
        self.lng = -17.4677

    def test_ranges_are_ordered_pairs(self):
        bounds = geohash_query_bounds(self.lat, self.lng, 1000)

        assert 1 <= len(bounds) <= 9
        for start, end in bounds:
            assert start <= end

    def test_ranges_are_unique(self):
        bounds = geohash_query_bounds(self.lat, self.lng, 4000)
        assert len(bounds) == len(set(bounds))

    def test_points_inside_radius_are_covered(self):
        radius_m = 2000
        bounds = geohash_query_bounds(self.lat, self.lng, radius_m)

        # Points on a ring slightly inside the radius
        for step in range(16):
            angle = 2 * math.pi * step / 16
            d_lat = (radius_m * 0.95 * math.cos(angle)) / 111_320
            d_lng = (radius_m * 0.95 * math.sin(angle)) / (111_320 * math.cos(math.radians(self.lat)))
            lat, lng = self.lat + d_lat, self.lng + d_lng

            assert haversine_distance_m(self.lat, self.lng, lat, lng) <= radius_m
            assert _in_bounds(encode_geohash(lat, lng), bounds)

    def test_center_is_covered(self):
        bounds = geohash_query_bounds(self.lat, self.lng, 500)
        assert _in_bounds(encode_geohash(self.lat, self.lng), bounds)

    def test_larger_radius_uses_shorter_prefixes(self):
        small = geohash_query_bounds(self.lat, self.lng, 1000)
        large = geohash_query_bounds(self.lat, self.lng, 30000)

        assert len(large[0][0]) <= len(small[0][0])

    def test_non_positive_radius_rejected(self):
        with pytest.raises(ValueError):
            geohash_query_bounds(self.lat, self.lng, 0)
