from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from iot_platform.core.errors import NotFoundError, ValidationError
from iot_platform.services.alert_service import AlertService
from iot_platform.services.threshold_service import ThresholdService


async def test_create_quantizes_value(session, sensor):
    threshold = await ThresholdService(session).create(
        sensor_id=sensor.id, kind="MINIMUM", severity="ALERT", value=Decimal("15.5"), is_active=True
    )

    assert threshold.value == Decimal("15.50")
    assert threshold.is_active is True


async def test_new_threshold_is_inactive_by_default(session, sensor):
    threshold = await ThresholdService(session).create(
        sensor_id=sensor.id, kind="MAXIMUM", severity="WARNING", value=Decimal("25")
    )

    assert threshold.is_active is False


async def test_create_for_unknown_sensor(session):
    with pytest.raises(NotFoundError):
        await ThresholdService(session).create(
            sensor_id=uuid.uuid4(), kind="MINIMUM", severity="ALERT", value=Decimal("1")
        )


async def test_create_for_actuator_is_refused(session, make_device):
    actuator = await make_device(kind="ACTUATOR", name="Ventilation")

    with pytest.raises(NotFoundError):
        await ThresholdService(session).create(
            sensor_id=actuator.id, kind="MAXIMUM", severity="ALERT", value=Decimal("1")
        )


async def test_active_minimum_must_stay_below_active_maximum(session, sensor):
    service = ThresholdService(session)
    await service.create(sensor_id=sensor.id, kind="MAXIMUM", severity="ALERT", value=Decimal("30"), is_active=True)

    with pytest.raises(ValidationError) as excinfo:
        await service.create(sensor_id=sensor.id, kind="MINIMUM", severity="ALERT", value=Decimal("30"), is_active=True)
    assert excinfo.value.message.startswith("Cohérence requise")

    ok = await service.create(
        sensor_id=sensor.id, kind="MINIMUM", severity="WARNING", value=Decimal("29.99"), is_active=True
    )
    assert ok.is_active


async def test_inactive_threshold_skips_coherence_until_toggled(session, sensor):
    service = ThresholdService(session)
    await service.create(sensor_id=sensor.id, kind="MINIMUM", severity="ALERT", value=Decimal("20"), is_active=True)
    maximum = await service.create(sensor_id=sensor.id, kind="MAXIMUM", severity="ALERT", value=Decimal("10"))

    with pytest.raises(ValidationError):
        await service.toggle(maximum.id)

    maximum = await service.update(maximum.id, value=Decimal("25"), is_active=False)
    toggled = await service.toggle(maximum.id)
    assert toggled.is_active is True

    toggled = await service.toggle(maximum.id)
    assert toggled.is_active is False


async def test_update_checks_coherence(session, sensor):
    service = ThresholdService(session)
    minimum = await service.create(
        sensor_id=sensor.id, kind="MINIMUM", severity="ALERT", value=Decimal("15"), is_active=True
    )
    await service.create(sensor_id=sensor.id, kind="MAXIMUM", severity="ALERT", value=Decimal("30"), is_active=True)

    with pytest.raises(ValidationError):
        await service.update(minimum.id, value=Decimal("31"), is_active=True)

    updated = await service.update(minimum.id, value=Decimal("16.25"), is_active=True)
    assert updated.value == Decimal("16.25")


async def test_list_by_sensor(session, sensor, add_threshold):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    await add_threshold(sensor, "MAXIMUM", "ALERT", "30.00", is_active=False)

    thresholds = await ThresholdService(session).list_by_sensor(sensor.id)

    assert len(thresholds) == 2


async def test_delete_refused_while_alerts_are_open(session, sensor, add_threshold, ingest):
    threshold = await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    alert = (await ingest(sensor, "12.50")).evaluation.created[0]
    await AlertService(session).acknowledge(alert.id)

    with pytest.raises(ValidationError) as excinfo:
        await ThresholdService(session).delete(threshold.id)
    assert excinfo.value.details["open_alerts"] == 1

    await AlertService(session).resolve(alert.id)
    await ThresholdService(session).delete(threshold.id)

    with pytest.raises(NotFoundError):
        await ThresholdService(session).get(threshold.id)
    remaining = await AlertService(session).list_by_sensor(sensor.id)
    assert [(a.threshold_id, a.kind, a.severity) for a in remaining] == [(None, "MINIMUM", "ALERT")]
