"""
Constants for the matching module: geodesy, geohash and scoring.
"""

from typing import Dict

# Mean Earth radius in meters (haversine)
EARTH_RADIUS_M = 6_371_000.0

# Geohash parameters
GEOHASH_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
GEOHASH_PRECISION = 10
BITS_PER_CHAR = 5
MAXIMUM_BITS_PRECISION = 22 * BITS_PER_CHAR
# Sorts after every base32 character; closes an open-ended range
GEOHASH_RANGE_SENTINEL = "~"

# WGS84 figures used for bounding boxes
EARTH_EQ_RADIUS_M = 6_378_137.0
EARTH_MERIDIONAL_CIRCUMFERENCE_M = 40_007_860.0
METERS_PER_DEGREE_LATITUDE = 110_574.0
EARTH_E2 = 0.00669447819799
EPSILON = 1e-12

# Composite score weights: proximity, quality, speed, capacity.
# The ordering is a compatibility contract with existing rankings.
SCORE_WEIGHTS: Dict[str, float] = {
    "distance": 0.4,
    "rating": 0.3,
    "reactivity": 0.2,
    "workload": 0.1,
}

MAX_SCORE = 100.0
MAX_RATING = 5.0

# Distance score loses 10 points per km
DISTANCE_PENALTY_PER_KM = 10.0

# Reactivity score loses 2 points per minute of average response time
REACTIVITY_PENALTY_PER_MINUTE = 2.0
DEFAULT_RESPONSE_TIME_MINUTES = 60.0

# Workload
DEFAULT_MAX_CONCURRENT_JOBS = 3
WORKLOAD_SCORE_FREE = 100.0
WORKLOAD_SCORE_BUSY = 30.0
