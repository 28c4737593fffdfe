#!/usr/bin/env python3
"""
Provider Seeding Script
Creates tables and inserts demo providers scattered around a center point.
"""

import argparse
import asyncio
import random
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import settings
from src.database.connection import AsyncSessionLocal, async_session_context, init_database
from src.database.models import Provider
from src.logging_config import configure_logging, get_logger
from src.modules.matching.geohash import encode_geohash

logger = get_logger(__name__)

DEFAULT_CATEGORIES = ["Plumbing", "Electricity", "Cleaning", "Painting", "Locksmith"]

# Roughly 1 km in degrees of latitude
KM_IN_DEGREES = 1 / 111.0


def build_providers(count: int, center_lat: float, center_lng: float, spread_km: float):
    """Random providers within ``spread_km`` of the center."""
    rng = random.Random(42)
    providers = []

    for index in range(count):
        lat = center_lat + rng.uniform(-spread_km, spread_km) * KM_IN_DEGREES
        lng = center_lng + rng.uniform(-spread_km, spread_km) * KM_IN_DEGREES
        providers.append(Provider(
            id=f"provider-{index:04d}",
            name=f"Provider {index}",
            category=rng.choice(DEFAULT_CATEGORIES),
            available=rng.random() > 0.2,
            rating=round(rng.uniform(3.0, 5.0), 2),
            reviews_count=rng.randint(0, 120),
            jobs_done=rng.randint(0, 200),
            current_active_jobs=rng.randint(0, 3),
            max_concurrent_jobs=3,
            average_response_time_minutes=rng.choice([None, 5, 15, 30, 45]),
            latitude=lat,
            longitude=lng,
            geohash=encode_geohash(lat, lng),
        ))

    return providers


async def seed(count: int, spread_km: float) -> int:
    await init_database()

    providers = build_providers(
        count, settings.default_center_lat, settings.default_center_lng, spread_km
    )
    async with async_session_context(AsyncSessionLocal) as session:
        session.add_all(providers)

    logger.info("providers_seeded", count=len(providers), spread_km=spread_km)
    return len(providers)


def main():
    parser = argparse.ArgumentParser(description="Seed demo providers")
    parser.add_argument("--count", type=int, default=200, help="Number of providers")
    parser.add_argument("--spread-km", type=float, default=20.0, help="Max offset from center")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(seed(args.count, args.spread_km))


if __name__ == "__main__":
    main()
