from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from iot_platform.core.clock import as_utc
from iot_platform.core.errors import StorageFailure
from iot_platform.models.alert import Alert
from iot_platform.models.reading import Reading
from iot_platform.repositories._guard import storage_guard
from iot_platform.repositories.alerts import AlertRepository
from iot_platform.services.alert_evaluator import AlertEvaluator, is_breached, quantize
from iot_platform.services.alert_service import AlertService


class StaleReadAlertRepository(AlertRepository):
    """Simule un flux concurrent : la première lecture ne voit pas l’alerte déjà créée."""

    def __init__(self, session) -> None:
        super().__init__(session)
        self.stale_reads = 1

    async def get_active_alert(self, sensor_id, threshold_id, severity):
        if self.stale_reads:
            self.stale_reads -= 1
            return None
        return await super().get_active_alert(sensor_id, threshold_id, severity)


@pytest.mark.parametrize(
    "value, kind, bound, expected",
    [
        ("12.50", "MINIMUM", "15.00", True),
        ("15.00", "MINIMUM", "15.00", False),
        ("15.01", "MINIMUM", "15.00", False),
        ("30.01", "MAXIMUM", "30.00", True),
        ("30.00", "MAXIMUM", "30.00", False),
    ],
)
def test_breach_is_strict(value, kind, bound, expected):
    assert is_breached(quantize(value), kind, quantize(bound)) is expected


def test_quantize_rounds_to_two_places():
    assert quantize(12.5) == Decimal("12.50")
    assert str(quantize("7")) == "7.00"
    assert quantize("0.125") == Decimal("0.13")


async def test_reading_below_minimum_creates_active_alert(session, sensor, add_threshold, ingest):
    threshold = await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")

    result = await ingest(sensor, "12.50")

    assert len(result.evaluation.created) == 1
    alert = result.evaluation.created[0]
    assert alert.status == "ACTIVE"
    assert alert.threshold_id == threshold.id
    assert (alert.kind, alert.severity) == ("MINIMUM", "ALERT")
    assert alert.message == "Valeur 12.50 détectée le 01/03/2024 10:00 en dessous du seuil (15.00)"

    events = await AlertService(session).list_events(alert.id)
    assert [(e.event_type, e.actor) for e in events] == [("CREATED", "system")]


async def test_back_within_bounds_resolves_at_reading_time(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    first = await ingest(sensor, "12.50")
    alert = first.evaluation.created[0]

    t2 = clock.advance(minutes=10)
    second = await ingest(sensor, "16.00")

    assert second.evaluation.created == []
    assert [a.id for a in second.evaluation.resolved] == [alert.id]
    assert alert.status == "RESOLVED"
    assert as_utc(alert.resolved_at) == t2
    assert alert.message.endswith(" - Résolu automatiquement par le relevé du 01/03/2024 10:10")

    assert await AlertService(session).get_dashboard() == []
    events = await AlertService(session).list_events(alert.id)
    assert [e.event_type for e in events] == ["CREATED", "AUTO_RESOLVED"]


async def test_warning_and_alert_of_same_kind_coexist(session, sensor, add_threshold, ingest):
    await add_threshold(sensor, "MINIMUM", "WARNING", "18.00")
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")

    result = await ingest(sensor, "14.00")

    assert sorted(a.severity for a in result.evaluation.created) == ["ALERT", "WARNING"]
    assert len(await AlertService(session).get_dashboard()) == 2


async def test_only_warning_breached_between_levels(sensor, add_threshold, ingest):
    await add_threshold(sensor, "MINIMUM", "WARNING", "18.00")
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")

    result = await ingest(sensor, "16.00")

    assert [a.severity for a in result.evaluation.created] == ["WARNING"]


async def test_repeated_breach_keeps_a_single_active_alert(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")

    first = await ingest(sensor, "12.50")
    for value in ("11.00", "14.99", "9.10"):
        clock.advance(minutes=5)
        result = await ingest(sensor, value)
        assert result.evaluation.created == []
        assert result.evaluation.resolved == []

    alerts = await AlertService(session).list_by_sensor(sensor.id)
    assert [a.id for a in alerts] == [first.evaluation.created[0].id]


async def test_reevaluating_same_reading_is_idempotent(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    await ingest(sensor, "12.50")
    clock.advance(minutes=5)
    back = await ingest(sensor, "16.00")
    resolved = back.evaluation.resolved[0]
    resolved_at = resolved.resolved_at
    message = resolved.message

    evaluator = AlertEvaluator(session, clock=clock)
    clock.advance(minutes=5)
    again = await evaluator.evaluate_reading(back.reading)
    await session.commit()

    assert not again.changed
    assert resolved.resolved_at == resolved_at
    assert resolved.message == message
    assert len(await AlertService(session).list_by_sensor(sensor.id)) == 1


async def test_value_equal_to_bounds_triggers_nothing(sensor, add_threshold, ingest):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    await add_threshold(sensor, "MAXIMUM", "ALERT", "30.00")

    assert not (await ingest(sensor, "15.00")).evaluation.changed
    assert not (await ingest(sensor, "30")).evaluation.changed


async def test_maximum_breach_message(sensor, add_threshold, ingest):
    await add_threshold(sensor, "MAXIMUM", "ALERT", "30.00")

    result = await ingest(sensor, "31.25")

    assert result.evaluation.created[0].message == (
        "Valeur 31.25 détectée le 01/03/2024 10:00 au-dessus du seuil (30.00)"
    )


async def test_crossing_to_the_other_bound_swaps_alerts(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    await add_threshold(sensor, "MAXIMUM", "ALERT", "30.00")

    low = await ingest(sensor, "12.00")
    clock.advance(minutes=5)
    high = await ingest(sensor, "35.00")

    assert [a.kind for a in high.evaluation.created] == ["MAXIMUM"]
    assert [a.id for a in high.evaluation.resolved] == [low.evaluation.created[0].id]

    clock.advance(minutes=5)
    normal = await ingest(sensor, "20.00")
    assert normal.evaluation.created == []
    assert [a.kind for a in normal.evaluation.resolved] == ["MAXIMUM"]
    assert await AlertService(session).get_dashboard() == []


async def test_inactive_threshold_is_not_evaluated(sensor, add_threshold, ingest):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00", is_active=False)

    result = await ingest(sensor, "10.00")

    assert not result.evaluation.changed


async def test_alert_of_deactivated_threshold_still_resolves(session, sensor, add_threshold, ingest, clock):
    threshold = await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    first = await ingest(sensor, "12.50")

    threshold.is_active = False
    await session.commit()

    clock.advance(minutes=5)
    result = await ingest(sensor, "16.00")

    assert [a.id for a in result.evaluation.resolved] == [first.evaluation.created[0].id]


async def test_acknowledged_alert_is_not_auto_resolved(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    first = await ingest(sensor, "12.50")
    alert = first.evaluation.created[0]
    await AlertService(session, clock=clock).acknowledge(alert.id)

    clock.advance(minutes=5)
    result = await ingest(sensor, "16.00")

    assert result.evaluation.resolved == []
    assert alert.status == "ACKNOWLEDGED"


async def test_concurrent_creation_is_treated_as_existing(session, sensor, add_threshold, ingest, clock):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    first = await ingest(sensor, "12.50")

    reading = Reading(sensor_id=sensor.id, value=Decimal("11.00"), measured_at=clock(), origin="AUTOMATIC")
    session.add(reading)
    await session.flush()

    evaluator = AlertEvaluator(session, clock=clock, alerts=StaleReadAlertRepository(session))
    result = await evaluator.evaluate_reading(reading)
    await session.commit()

    assert result.created == []
    alerts = await AlertService(session).list_by_sensor(sensor.id)
    assert [a.id for a in alerts] == [first.evaluation.created[0].id]


async def test_create_alert_conflict_returns_existing(session, sensor, add_threshold, ingest):
    threshold = await add_threshold(sensor, "MAXIMUM", "WARNING", "25.00")
    existing = (await ingest(sensor, "26.00")).evaluation.created[0]

    duplicate = Alert(
        sensor_id=sensor.id,
        threshold_id=threshold.id,
        kind="MAXIMUM",
        severity="WARNING",
        status="ACTIVE",
        message="doublon",
    )
    alert, created = await AlertRepository(session).create_alert(duplicate)

    assert created is False
    assert alert.id == existing.id


def test_storage_guard_converts_sqlalchemy_errors():
    with pytest.raises(StorageFailure) as excinfo:
        with storage_guard("alert.get"):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    assert excinfo.value.status_code == 500
    assert excinfo.value.details == {"operation": "alert.get", "error": "OperationalError"}
    assert isinstance(excinfo.value.__cause__, OperationalError)
