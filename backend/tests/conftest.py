"""
Fixtures pytest.

Base SQLite en mémoire (aiosqlite) par test, horloge injectable et petit parc de démo
(une localisation, une unité, une sonde de température).
"""

from __future__ import annotations

import os

# Avant tout import de iot_platform : settings est lu à l’import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_AUTO_CREATE"] = "true"
os.environ["POLLING_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["API_KEY"] = ""
os.environ["ENV"] = "test"

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from iot_platform.db.session import build_engine, build_session_factory, init_models
from iot_platform.models import Device, Location, MeasurementUnit, Threshold
from iot_platform.services.reading_service import ReadingService

T0 = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Horloge contrôlée par le test."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
async def engine():
    eng = build_engine("sqlite+aiosqlite:///:memory:")
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
async def location(session):
    loc = Location(name="Serre Nord", description="Site de test")
    session.add(loc)
    await session.commit()
    return loc


@pytest.fixture
async def unit(session):
    u = MeasurementUnit(name="Degré Celsius", symbol="°C", sensor_type="TEMPERATURE")
    session.add(u)
    await session.commit()
    return u


@pytest.fixture
def make_device(session, location, unit):
    async def _make(**overrides) -> Device:
        values = {
            "kind": "SENSOR",
            "name": "Sonde T1",
            "location_id": location.id,
            "installed_at": T0 - timedelta(days=30),
            "channel": "HTTP_PUSH",
            "sensor_type": "TEMPERATURE",
            "unit_id": unit.id,
            "is_active": True,
        }
        values.update(overrides)
        if values["kind"] == "ACTUATOR":
            values.update(sensor_type=None, unit_id=None, actuator_type=values.get("actuator_type") or "MOTOR")
        device = Device(**values)
        session.add(device)
        await session.commit()
        return device

    return _make


@pytest.fixture
async def sensor(make_device):
    return await make_device()


@pytest.fixture
def add_threshold(session):
    async def _add(sensor, kind: str, severity: str, value: str, is_active: bool = True) -> Threshold:
        threshold = Threshold(
            sensor_id=sensor.id,
            kind=kind,
            severity=severity,
            value=Decimal(value),
            is_active=is_active,
        )
        session.add(threshold)
        await session.commit()
        return threshold

    return _add


@pytest.fixture
def ingest(session, clock):
    """Ingestion d’un relevé daté de l’horloge courante (sauf measured_at explicite)."""

    async def _ingest(sensor, value, measured_at=None, origin="MANUAL"):
        return await ReadingService(session, clock=clock).ingest(
            sensor_id=sensor.id,
            value=value,
            measured_at=measured_at,
            origin=origin,
        )

    return _ingest
