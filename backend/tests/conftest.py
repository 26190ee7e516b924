"""
Shared fixtures: in-memory database, lesson factory and scripted location
providers
"""
import asyncio
from datetime import datetime, timedelta, timezone
from math import pi
from typing import List, Union

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cybercheck.database import lessons, metadata
from cybercheck.gps.distance import EARTH_RADIUS_METERS
from cybercheck.gps.location import LocationError, LocationSource
from cybercheck.gps.models import LocationReading
from cybercheck.identity import Identity, Role

LESSON_LAT = 41.3111
LESSON_LON = 69.2797
BASE_TS = 1_700_000_000_000


def north_of(lat: float, meters: float) -> float:
    """Latitude that lies `meters` due north of lat"""
    return lat + meters / (EARTH_RADIUS_METERS * pi / 180)


def reading(lat=LESSON_LAT, lon=LESSON_LON, accuracy=8.0, ts=BASE_TS) -> LocationReading:
    return LocationReading(latitude=lat, longitude=lon, accuracy_meters=accuracy, timestamp_ms=ts)


def genuine_readings(lat=LESSON_LAT, lon=LESSON_LON, count=4) -> List[LocationReading]:
    """Readings with realistic jitter and spacing"""
    return [
        reading(lat + i * 2e-6, lon - i * 3e-6, accuracy=8.0 + i, ts=BASE_TS + i * 1500)
        for i in range(count)
    ]


class ScriptedProvider:
    """Returns (or raises) the scripted items in order and records each call"""

    def __init__(self, items: List[Union[LocationReading, LocationError]]):
        self.items = list(items)
        self.requests = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def get_position(self, high_accuracy, timeout_ms, maximum_age_ms):
        self.requests.append((high_accuracy, timeout_ms, maximum_age_ms))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if not self.items:
                raise AssertionError("provider called more often than scripted")
            item = self.items.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        finally:
            self.in_flight -= 1


def scripted_source(items) -> LocationSource:
    return LocationSource(ScriptedProvider(items))


@pytest.fixture
def student():
    return Identity(user_id="student-1", role=Role.STUDENT, full_name="Aziza Karimova")


@pytest.fixture
def teacher():
    return Identity(user_id="teacher-1", role=Role.TEACHER, full_name="Bekzod Aliyev")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_lesson(db):
    """Insert a lesson; keyword arguments override the column defaults"""

    def _make(**overrides):
        values = {
            "id": "lesson-1",
            "teacher_id": "teacher-1",
            "latitude": LESSON_LAT,
            "longitude": LESSON_LON,
            "radius_meters": 120.0,
            "pin_code": "123456",
            "pin_expires_at": datetime.now(timezone.utc) + timedelta(hours=1),
            "pin_validity_seconds": 3600,
            "fake_detection_level": "medium",
            "allow_skip_gps": False,
            "is_active": True,
        }
        values.update(overrides)
        db.execute(insert(lessons).values(**values))
        db.commit()
        return values

    return _make
