from __future__ import annotations

import json
import logging
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from iot_platform.core.errors import NotFoundError, StorageFailure, ValidationError
from iot_platform.core.logging import JsonFormatter
from iot_platform.models.alert import Alert
from iot_platform.models.reading import Reading
from iot_platform.repositories._guard import storage_guard
from iot_platform.repositories.alerts import AlertRepository
from iot_platform.services.alert_service import AlertService
from iot_platform.services.reading_service import ReadingService, normalize_value

from conftest import T0


@pytest.mark.parametrize("raw", [None, True, "abc", "NaN", "Infinity", "100000000"])
def test_normalize_value_rejects_invalid_input(raw):
    with pytest.raises(ValidationError):
        normalize_value(raw)


def test_normalize_value_quantizes():
    assert normalize_value(21.456) == Decimal("21.46")
    assert normalize_value("-3") == Decimal("-3.00")


async def test_ingest_persists_reading_with_clock_timestamp(session, sensor, ingest, clock):
    result = await ingest(sensor, "21.5")

    reading = await ReadingService(session).get(result.reading.id)
    assert reading.value == Decimal("21.50")
    assert reading.origin == "MANUAL"
    assert result.reading.measured_at == clock.now


async def test_ingest_unknown_sensor(session, clock):
    with pytest.raises(NotFoundError):
        await ReadingService(session, clock=clock).ingest(sensor_id=uuid.uuid4(), value="10")


async def test_ingest_on_actuator_is_refused(make_device, ingest):
    actuator = await make_device(kind="ACTUATOR", name="Volet")

    with pytest.raises(NotFoundError):
        await ingest(actuator, "10")


async def test_future_timestamp_is_rejected_before_evaluation(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")

    with pytest.raises(ValidationError):
        await ingest(sensor, "10.00", measured_at=clock.now + timedelta(minutes=6))

    rows, total = await ReadingService(session).list()
    assert total == 0
    assert await AlertService(session).get_dashboard() == []


async def test_small_clock_skew_is_tolerated(sensor, ingest, clock):
    result = await ingest(sensor, "10.00", measured_at=clock.now + timedelta(minutes=4))

    assert result.reading.measured_at == clock.now + timedelta(minutes=4)


async def test_list_pagination_and_filters(session, sensor, ingest):
    for minutes, origin in ((0, "MANUAL"), (10, "AUTOMATIC"), (20, "AUTOMATIC")):
        await ingest(sensor, "20", measured_at=T0 - timedelta(hours=1) + timedelta(minutes=minutes), origin=origin)

    service = ReadingService(session)
    rows, total = await service.list(page=1, page_size=2)
    assert total == 3
    assert len(rows) == 2
    assert rows[0].measured_at > rows[1].measured_at

    rows, total = await service.list(page=2, page_size=2)
    assert (len(rows), total) == (1, 3)

    rows, total = await service.list(origin="AUTOMATIC")
    assert total == 2

    rows, total = await service.list(date_from=T0 - timedelta(minutes=55))
    assert total == 2


async def test_sensor_history_and_recent(session, sensor, ingest):
    for minutes in range(5):
        await ingest(sensor, str(20 + minutes), measured_at=T0 - timedelta(minutes=50 - minutes * 10))

    service = ReadingService(session)
    history = await service.list_by_sensor(sensor.id, date_to=T0 - timedelta(minutes=30))
    assert [r.value for r in history] == [Decimal("22.00"), Decimal("21.00"), Decimal("20.00")]

    recent = await service.recent_by_sensor(sensor.id, 2)
    assert [r.value for r in recent] == [Decimal("24.00"), Decimal("23.00")]

    with pytest.raises(NotFoundError):
        await service.recent_by_sensor(uuid.uuid4())


async def test_update_does_not_reevaluate(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    result = await ingest(sensor, "12.50")

    updated = await ReadingService(session, clock=clock).update(result.reading.id, value="20", origin="AUTOMATIC")

    assert updated.value == Decimal("20.00")
    assert updated.origin == "AUTOMATIC"
    assert [a.status for a in await AlertService(session).list_by_sensor(sensor.id)] == ["ACTIVE"]


async def test_update_rejects_future_date(session, sensor, ingest, clock):
    result = await ingest(sensor, "12.50")

    with pytest.raises(ValidationError):
        await ReadingService(session, clock=clock).update(result.reading.id, measured_at=clock.now + timedelta(days=1))


async def test_delete(session, sensor, ingest):
    result = await ingest(sensor, "12.50")
    service = ReadingService(session)

    await service.delete(result.reading.id)

    with pytest.raises(NotFoundError):
        await service.get(result.reading.id)


async def _failing_create_alert(self, alert):
    with storage_guard("alert.create"):
        raise OperationalError("INSERT INTO alerts", {}, Exception("disk full"))


async def test_ingest_logs_evaluation_counts_at_info(sensor, add_threshold, ingest, caplog):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    caplog.set_level(logging.INFO, logger="iot_platform")

    result = await ingest(sensor, "12.50")

    assert len(result.evaluation.created) == 1
    ingested = next(r for r in caplog.records if r.getMessage() == "reading_ingested")
    assert (ingested.alerts_created, ingested.alerts_resolved) == (1, 0)

    line = json.loads(JsonFormatter().format(ingested))
    assert line["alerts_created"] == 1
    assert line["msg"] == "reading_ingested"


async def test_storage_failure_during_evaluation_rolls_back_reading(
    session, sensor, add_threshold, ingest, monkeypatch
):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    monkeypatch.setattr(AlertRepository, "create_alert", _failing_create_alert)

    with pytest.raises(StorageFailure) as excinfo:
        await ingest(sensor, "12.50")

    assert excinfo.value.details["operation"] == "alert.create"
    assert (await session.execute(select(func.count()).select_from(Reading))).scalar_one() == 0
    assert (await session.execute(select(func.count()).select_from(Alert))).scalar_one() == 0
