from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from iot_platform.core.clock import as_utc
from iot_platform.core.errors import InvalidStateTransition, NotFoundError, StorageFailure
from iot_platform.models.alert import Alert
from iot_platform.repositories._guard import storage_guard
from iot_platform.repositories.alerts import AlertRepository
from iot_platform.services.alert_service import AlertService
from iot_platform.services.threshold_service import ThresholdService


@pytest.fixture
async def active_alert(sensor, add_threshold, ingest):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    result = await ingest(sensor, "12.50")
    return result.evaluation.created[0]


async def test_acknowledge_then_resolve(session, active_alert, clock):
    service = AlertService(session, clock=clock)

    t_ack = clock.advance(minutes=3)
    change = await service.acknowledge(active_alert.id, "Vu par l’équipe", actor="alice")
    assert change.old_status == "ACTIVE"
    assert change.alert.status == "ACKNOWLEDGED"
    assert as_utc(change.alert.acknowledged_at) == t_ack
    assert change.alert.message.endswith(" - Vu par l’équipe")

    t_res = clock.advance(minutes=7)
    change = await service.resolve(active_alert.id, "Chauffage relancé", actor="alice")
    assert change.old_status == "ACKNOWLEDGED"
    assert change.alert.status == "RESOLVED"
    assert as_utc(change.alert.resolved_at) == t_res

    events = await service.list_events(active_alert.id)
    assert [(e.event_type, e.old_status, e.new_status) for e in events] == [
        ("CREATED", None, "ACTIVE"),
        ("ACKNOWLEDGED", "ACTIVE", "ACKNOWLEDGED"),
        ("RESOLVED", "ACKNOWLEDGED", "RESOLVED"),
    ]
    assert events[1].actor == "alice"
    assert events[2].message == "Chauffage relancé"


async def test_resolve_directly_from_active(session, active_alert):
    change = await AlertService(session).resolve(active_alert.id)

    assert change.old_status == "ACTIVE"
    assert change.alert.status == "RESOLVED"
    assert change.alert.acknowledged_at is None


async def test_resolve_twice_fails(session, active_alert):
    service = AlertService(session)
    await service.resolve(active_alert.id)

    with pytest.raises(InvalidStateTransition) as excinfo:
        await service.resolve(active_alert.id)

    assert excinfo.value.current_status == "RESOLVED"
    assert excinfo.value.status_code == 400


async def test_acknowledge_resolved_alert_fails(session, active_alert):
    service = AlertService(session)
    await service.resolve(active_alert.id)

    with pytest.raises(InvalidStateTransition):
        await service.acknowledge(active_alert.id)


async def test_acknowledge_twice_fails(session, active_alert):
    service = AlertService(session)
    await service.acknowledge(active_alert.id)

    with pytest.raises(InvalidStateTransition) as excinfo:
        await service.acknowledge(active_alert.id)

    assert excinfo.value.details == {"current_status": "ACKNOWLEDGED", "target_status": "ACKNOWLEDGED"}


async def test_blank_comment_is_not_appended(session, active_alert):
    message = active_alert.message

    change = await AlertService(session).acknowledge(active_alert.id, "   ")

    assert change.alert.message == message


async def test_unknown_alert_is_not_found(session):
    service = AlertService(session)
    missing = uuid.uuid4()

    with pytest.raises(NotFoundError):
        await service.acknowledge(missing)
    with pytest.raises(NotFoundError):
        await service.resolve(missing)
    with pytest.raises(NotFoundError):
        await service.get_details(missing)
    with pytest.raises(NotFoundError):
        await service.list_events(missing)


async def test_details_include_sensor_and_threshold(session, sensor, active_alert):
    details = await AlertService(session).get_details(active_alert.id)

    assert details.sensor.id == sensor.id
    assert details.threshold.id == active_alert.threshold_id


async def test_details_after_threshold_deletion(session, active_alert):
    threshold_id = active_alert.threshold_id
    await AlertService(session).resolve(active_alert.id)
    await ThresholdService(session).delete(threshold_id)

    details = await AlertService(session).get_details(active_alert.id)

    assert details.threshold is None
    assert details.alert.threshold_id is None
    assert (details.alert.kind, details.alert.severity) == ("MINIMUM", "ALERT")


async def test_list_by_sensor_filters(session, sensor, add_threshold, ingest):
    await add_threshold(sensor, "MINIMUM", "ALERT", "15.00")
    await add_threshold(sensor, "MINIMUM", "WARNING", "18.00")
    created = (await ingest(sensor, "14.00")).evaluation.created
    warning = next(a for a in created if a.severity == "WARNING")

    service = AlertService(session)
    await service.acknowledge(warning.id)

    assert len(await service.list_by_sensor(sensor.id)) == 2
    assert [a.id for a in await service.list_by_sensor(sensor.id, status="ACKNOWLEDGED")] == [warning.id]
    assert len(await service.list_by_sensor(sensor.id, kind="MINIMUM")) == 2
    assert await service.list_by_sensor(sensor.id, kind="MAXIMUM") == []
    assert [a.severity for a in await service.get_dashboard()] == ["ALERT"]


async def test_failed_transition_leaves_alert_active(session, active_alert, clock, monkeypatch):
    alert_id = active_alert.id

    async def broken_add_event(self, event):
        with storage_guard("alert_event.add"):
            raise OperationalError("INSERT INTO alert_events", {}, Exception("disk full"))

    monkeypatch.setattr(AlertRepository, "add_event", broken_add_event)

    with pytest.raises(StorageFailure):
        await AlertService(session, clock=clock).acknowledge(alert_id, "Vu", actor="alice")

    monkeypatch.undo()
    reloaded = await session.get(Alert, alert_id)
    assert reloaded.status == "ACTIVE"
    assert reloaded.acknowledged_at is None
    assert [e.event_type for e in await AlertService(session).list_events(alert_id)] == ["CREATED"]
