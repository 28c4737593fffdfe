"""
Geohash encoding and range bounds for radius queries.

A disc around a center is covered by up to nine geohash cells (the center
and its eight neighbours at a resolution close to the radius). Each cell
becomes one ``[start, end]`` interval over the lexicographically ordered
geohash column, so a directory can answer a radius query with plain range
scans. Results are a superset of the disc and must be filtered by exact
distance afterwards.
"""

import logging
import math
from typing import List, Tuple

from .constants import (
    BITS_PER_CHAR,
    EARTH_E2,
    EARTH_EQ_RADIUS_M,
    EARTH_MERIDIONAL_CIRCUMFERENCE_M,
    EPSILON,
    GEOHASH_BASE32,
    GEOHASH_PRECISION,
    GEOHASH_RANGE_SENTINEL,
    MAXIMUM_BITS_PRECISION,
    METERS_PER_DEGREE_LATITUDE,
)
from .utils import wrap_longitude

logger = logging.getLogger(__name__)

GeohashRange = Tuple[str, str]


def encode_geohash(lat: float, lng: float, precision: int = GEOHASH_PRECISION) -> str:
    """
    Encode a location as a base32 geohash.

    Bits alternate longitude/latitude, longitude first.

    Example:
        >>> encode_geohash(57.64911, 10.40744, 11)
        'u4pruydqqvj'
    """
    if not -90 <= lat <= 90:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180 <= lng <= 180:
        raise ValueError(f"Longitude out of range: {lng}")
    if precision < 1:
        raise ValueError("Precision must be at least 1")

    lat_range = [-90.0, 90.0]
    lng_range = [-180.0, 180.0]
    chars = []
    value = 0
    bits = 0
    even = True

    while len(chars) < precision:
        coordinate, interval = (lng, lng_range) if even else (lat, lat_range)
        mid = (interval[0] + interval[1]) / 2
        if coordinate > mid:
            value = (value << 1) + 1
            interval[0] = mid
        else:
            value = value << 1
            interval[1] = mid
        even = not even

        if bits < BITS_PER_CHAR - 1:
            bits += 1
        else:
            chars.append(GEOHASH_BASE32[value])
            bits = 0
            value = 0

    return "".join(chars)


def _meters_to_longitude_degrees(distance: float, latitude: float) -> float:
    radians = math.radians(latitude)
    num = math.cos(radians) * EARTH_EQ_RADIUS_M * math.pi / 180
    denom = 1 / math.sqrt(1 - EARTH_E2 * math.sin(radians) * math.sin(radians))
    delta_deg = num * denom
    if delta_deg < EPSILON:
        return 360.0 if distance > 0 else 0.0
    return min(360.0, distance / delta_deg)


def _longitude_bits_for_resolution(resolution: float, latitude: float) -> float:
    degrees = _meters_to_longitude_degrees(resolution, latitude)
    if abs(degrees) > 0.000001:
        return max(1.0, math.log2(360 / degrees))
    return 1.0


def _latitude_bits_for_resolution(resolution: float) -> float:
    return min(
        math.log2(EARTH_MERIDIONAL_CIRCUMFERENCE_M / 2 / resolution),
        MAXIMUM_BITS_PRECISION,
    )


def _bounding_box_bits(lat: float, size: float) -> int:
    lat_delta = size / METERS_PER_DEGREE_LATITUDE
    lat_north = min(90.0, lat + lat_delta)
    lat_south = max(-90.0, lat - lat_delta)
    bits_lat = math.floor(_latitude_bits_for_resolution(size)) * 2
    bits_lng_north = math.floor(_longitude_bits_for_resolution(size, lat_north)) * 2 - 1
    bits_lng_south = math.floor(_longitude_bits_for_resolution(size, lat_south)) * 2 - 1
    return min(bits_lat, bits_lng_north, bits_lng_south, MAXIMUM_BITS_PRECISION)


def _bounding_box_coordinates(lat: float, lng: float, radius: float) -> List[Tuple[float, float]]:
    lat_degrees = radius / METERS_PER_DEGREE_LATITUDE
    lat_north = min(90.0, lat + lat_degrees)
    lat_south = max(-90.0, lat - lat_degrees)
    lng_degrees = max(
        _meters_to_longitude_degrees(radius, lat_north),
        _meters_to_longitude_degrees(radius, lat_south),
    )
    west = wrap_longitude(lng - lng_degrees)
    east = wrap_longitude(lng + lng_degrees)
    return [
        (lat, lng), (lat, west), (lat, east),
        (lat_north, lng), (lat_north, west), (lat_north, east),
        (lat_south, lng), (lat_south, west), (lat_south, east),
    ]


def _geohash_range(geohash: str, bits: int) -> GeohashRange:
    """Range of all geohashes sharing the first ``bits`` bits of ``geohash``."""
    precision = math.ceil(bits / BITS_PER_CHAR)
    if len(geohash) < precision:
        return geohash, geohash + GEOHASH_RANGE_SENTINEL

    prefix = geohash[:precision]
    base = prefix[:-1]
    last_value = GEOHASH_BASE32.index(prefix[-1])
    significant_bits = bits - len(base) * BITS_PER_CHAR
    unused_bits = BITS_PER_CHAR - significant_bits

    start_value = (last_value >> unused_bits) << unused_bits
    end_value = start_value + (1 << unused_bits)
    if end_value > len(GEOHASH_BASE32) - 1:
        return base + GEOHASH_BASE32[start_value], base + GEOHASH_RANGE_SENTINEL
    return base + GEOHASH_BASE32[start_value], base + GEOHASH_BASE32[end_value]


def geohash_query_bounds(lat: float, lng: float, radius_m: float) -> List[GeohashRange]:
    """
    Compute deduplicated geohash ranges covering a disc.

    Args:
        lat: Center latitude
        lng: Center longitude
        radius_m: Radius in meters (must be positive)

    Returns:
        Ordered list of ``(start, end)`` ranges, both ends inclusive
    """
    if radius_m <= 0:
        raise ValueError(f"Radius must be positive, got {radius_m}")

    query_bits = max(1, _bounding_box_bits(lat, radius_m))
    precision = math.ceil(query_bits / BITS_PER_CHAR)

    ranges: List[GeohashRange] = []
    for point_lat, point_lng in _bounding_box_coordinates(lat, lng, radius_m):
        bound = _geohash_range(encode_geohash(point_lat, point_lng, precision), query_bits)
        if bound not in ranges:
            ranges.append(bound)

    logger.debug(
        f"Geohash bounds for radius {radius_m:.0f} m: {len(ranges)} ranges "
        f"at {query_bits} bits"
    )
    return ranges
