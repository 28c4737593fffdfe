"""Shared fixtures: environment, temporary SQLite database, provider factory."""

import os

# Must be set before anything imports src.config
os.environ.setdefault("APM_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite://")

import asyncio
import math
from datetime import datetime, timedelta

import pytest
from sqlalchemy.pool import NullPool

from src.database.connection import (
    build_engine,
    build_session_factory,
    close_database,
    init_database,
)
from src.database.models import Provider
from src.modules.matching.constants import EARTH_RADIUS_M
from src.modules.matching.geohash import encode_geohash

# Dakar
CENTER_LAT = 14.7167
CENTER_LNG = -17.4677

METERS_PER_DEGREE_LAT = EARTH_RADIUS_M * math.pi / 180


def north_of(lat: float, km: float) -> float:
    """Latitude ``km`` kilometers north along the meridian."""
    return lat + (km * 1000) / METERS_PER_DEGREE_LAT


@pytest.fixture
def session_factory(tmp_path):
    """Session factory over a fresh SQLite file with all tables created."""
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'matching.db'}",
        poolclass=NullPool,
    )
    asyncio.run(init_database(engine))
    yield build_session_factory(engine)
    asyncio.run(close_database(engine))


@pytest.fixture
def add_providers(session_factory):
    """Insert providers; each values_in is a dict of Provider column overrides plus ``km``."""

    def _add(*overrides):
        rows = []
        for values_in in overrides:
            values_in = dict(values_in)
            km = values_in.pop("km", None)
            lat = values_in.pop("latitude", north_of(CENTER_LAT, km) if km is not None else None)
            lng = values_in.pop("longitude", CENTER_LNG if km is not None else None)
            values = {
                "category": "Plumbing",
                "available": True,
                "rating": 4.0,
                "reviews_count": 0,
                "jobs_done": 0,
                "current_active_jobs": 0,
                "max_concurrent_jobs": 3,
                "average_response_time_minutes": 30,
            }
            values.update(values_in)
            rows.append(Provider(
                latitude=lat,
                longitude=lng,
                geohash=encode_geohash(lat, lng) if lat is not None else None,
                **values,
            ))

        async def _insert():
            async with session_factory() as session:
                async with session.begin():
                    session.add_all(rows)

        asyncio.run(_insert())
        return [row.id for row in rows]

    return _add


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingMessaging:
    """Messaging service collecting what would be sent."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    async def ensure_conversation(self, requester_id: str, provider_id: str) -> str:
        if self.fail:
            raise ConnectionError("messaging down")
        return f"{requester_id}_{provider_id}"

    async def post_system_message(self, conversation_id: str, text: str) -> None:
        self.messages.append((conversation_id, text))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def messaging():
    return RecordingMessaging()
