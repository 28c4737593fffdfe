"""
Geodesic helpers for the matching module.
"""

import math
from typing import Optional

from .constants import EARTH_RADIUS_M


def haversine_distance_m(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    radius: float = EARTH_RADIUS_M
) -> float:
    """
    Great-circle distance between two points, in meters.

    Formula:
        d = 2R × atan2(√a, √(1−a)),
        a = sin²(Δφ/2) + cos(φ₁)cos(φ₂)sin²(Δλ/2)

    Example:
        >>> round(haversine_distance_m(14.7167, -17.4677, 14.7167, -17.4677))
        0
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return radius * c


def is_null_island(lat: Optional[float], lng: Optional[float]) -> bool:
    """True for the (0, 0) placeholder written by clients without a GPS fix."""
    return lat == 0 and lng == 0


def is_valid_location(lat: Optional[float], lng: Optional[float]) -> bool:
    if lat is None or lng is None:
        return False
    if is_null_island(lat, lng):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def wrap_longitude(longitude: float) -> float:
    """Wrap a longitude into [-180, 180]."""
    if -180 <= longitude <= 180:
        return longitude
    adjusted = longitude + 180
    if adjusted > 0:
        return (adjusted % 360) - 180
    return 180 - (-adjusted % 360)


def km_to_meters(km: float) -> float:
    return km * 1000.0
