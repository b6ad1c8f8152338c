from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import OperationalError
from fastapi.testclient import TestClient

from iot_platform.core.rate_limit import rate_limiter
from iot_platform.repositories._guard import storage_guard
from iot_platform.repositories.alerts import AlertRepository
from iot_platform.core.settings import settings
from iot_platform.main import create_app


@pytest.fixture
def client():
    # Base mémoire recréée à chaque démarrage (DB_AUTO_CREATE), libérée à l’arrêt
    with TestClient(create_app()) as c:
        yield c


@pytest.fixture
def sensor_id(client) -> str:
    location = client.post("/locations", json={"name": "Serre Nord"})
    assert location.status_code == 201, location.text
    unit = client.post("/units", json={"name": "Degré Celsius", "symbol": "°C", "sensor_type": "TEMPERATURE"})
    assert unit.status_code == 201, unit.text

    sensor = client.post(
        "/sensors",
        json={
            "name": "Sonde T1",
            "location_id": location.json()["id"],
            "sensor_type": "TEMPERATURE",
            "unit_id": unit.json()["id"],
        },
    )
    assert sensor.status_code == 201, sensor.text
    return sensor.json()["id"]


def add_threshold(client, sensor_id, kind, severity, value):
    res = client.post(
        "/thresholds",
        json={"sensor_id": sensor_id, "kind": kind, "severity": severity, "value": value, "is_active": True},
    )
    assert res.status_code == 201, res.text
    return res.json()


def test_health(client):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["polling"]["enabled"] is False
    assert res.json()["version"]


def test_system_status(client):
    body = client.get("/system/status").json()

    assert body["ok"] is True
    assert body["db"]["ok"] is True
    assert body["polling"]["running"] is False
    assert body["last_update"] is None


def test_reading_lifecycle_over_http(client, sensor_id):
    threshold = add_threshold(client, sensor_id, "MINIMUM", "ALERT", "15")
    assert threshold["value"] == "15.00"

    res = client.post("/readings", json={"sensor_id": sensor_id, "value": "12.5"})
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["reading"]["value"] == "12.50"
    assert len(body["alerts_created"]) == 1
    alert = body["alerts_created"][0]
    assert alert["status"] == "ACTIVE"
    assert alert["threshold_id"] == threshold["id"]

    dashboard = client.get("/alerts/dashboard").json()
    assert [a["id"] for a in dashboard] == [alert["id"]]

    details = client.get(f"/alerts/{alert['id']}").json()
    assert details["sensor"]["id"] == sensor_id
    assert details["threshold"]["value"] == "15.00"

    res = client.post(
        f"/alerts/{alert['id']}/acknowledge",
        json={"comment": "Pris en charge"},
        headers={"X-Actor": "alice", "X-Request-Id": "req-ack-1"},
    )
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "ACKNOWLEDGED"
    assert res.headers["X-Request-Id"] == "req-ack-1"

    res = client.post(f"/alerts/{alert['id']}/resolve")
    assert res.status_code == 200
    assert res.json()["status"] == "RESOLVED"
    assert res.json()["message"].endswith(" - Pris en charge")

    events = client.get(f"/alerts/{alert['id']}/events").json()
    assert [e["event_type"] for e in events] == ["CREATED", "ACKNOWLEDGED", "RESOLVED"]
    assert (events[1]["actor"], events[1]["request_id"]) == ("alice", "req-ack-1")
    assert events[2]["actor"] == "operator"

    res = client.post(f"/alerts/{alert['id']}/resolve")
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "INVALID_STATE_TRANSITION"
    assert error["details"]["current_status"] == "RESOLVED"

    by_sensor = client.get(f"/alerts/by-sensor/{sensor_id}", params={"status": "RESOLVED"}).json()
    assert [a["id"] for a in by_sensor] == [alert["id"]]


def test_auto_resolution_over_http(client, sensor_id):
    add_threshold(client, sensor_id, "MAXIMUM", "WARNING", "25")

    created = client.post("/readings", json={"sensor_id": sensor_id, "value": 26}).json()["alerts_created"]
    back = client.post("/readings", json={"sensor_id": sensor_id, "value": 24}).json()

    assert back["alerts_created"] == []
    assert [a["id"] for a in back["alerts_resolved"]] == [created[0]["id"]]
    assert back["alerts_resolved"][0]["status"] == "RESOLVED"


def test_readings_listing(client, sensor_id):
    for value in ("20", "21", "22"):
        client.post("/readings", json={"sensor_id": sensor_id, "value": value})

    page = client.get("/readings", params={"page": 1, "page_size": 2}).json()
    assert page["meta"] == {"page": 1, "page_size": 2, "total": 3}
    assert len(page["data"]) == 2

    recent = client.get(f"/sensors/{sensor_id}/readings/recent", params={"n": 1}).json()
    assert len(recent) == 1

    reading_id = page["data"][0]["id"]
    res = client.put(f"/readings/{reading_id}", json={"value": "19.9"})
    assert res.json()["value"] == "19.90"

    assert client.delete(f"/readings/{reading_id}").status_code == 204
    assert client.get(f"/readings/{reading_id}").status_code == 404


def test_domain_errors_use_uniform_payload(client, sensor_id):
    res = client.get(f"/alerts/{uuid.uuid4()}")
    assert res.status_code == 404
    error = res.json()["error"]
    assert error["code"] == "NOT_FOUND"
    assert error["status"] == 404
    assert error["request_id"]

    res = client.post("/readings", json={"sensor_id": str(uuid.uuid4()), "value": "10"})
    assert res.status_code == 404

    res = client.post("/readings", json={"sensor_id": sensor_id, "value": "10", "measured_at": "2999-01-01T00:00:00Z"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"

    res = client.post("/readings", json={"sensor_id": sensor_id})
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


def test_threshold_coherence_and_delete_guard(client, sensor_id):
    add_threshold(client, sensor_id, "MAXIMUM", "ALERT", "30")
    res = client.post(
        "/thresholds",
        json={"sensor_id": sensor_id, "kind": "MINIMUM", "severity": "ALERT", "value": "31", "is_active": True},
    )
    assert res.status_code == 400

    minimum = add_threshold(client, sensor_id, "MINIMUM", "ALERT", "15")
    client.post("/readings", json={"sensor_id": sensor_id, "value": "10"})

    res = client.delete(f"/thresholds/{minimum['id']}")
    assert res.status_code == 400
    assert res.json()["error"]["details"]["open_alerts"] == 1

    toggled = client.post(f"/thresholds/{minimum['id']}/toggle").json()
    assert toggled["is_active"] is False
    assert len(client.get("/thresholds", params={"sensor_id": sensor_id}).json()) == 2


def test_device_push_endpoint(client, sensor_id):
    add_threshold(client, sensor_id, "MINIMUM", "ALERT", "15")

    res = client.post(f"/devices/{sensor_id}/data", json={"value": 11.2})
    assert res.status_code == 201, res.text
    assert res.json()["reading"]["origin"] == "AUTOMATIC"
    assert len(res.json()["alerts_created"]) == 1

    sensor = client.get(f"/sensors/{sensor_id}").json()
    actuator = client.post(
        "/actuators",
        json={"name": "Ventilation", "location_id": sensor["location_id"], "actuator_type": "MOTOR"},
    )
    assert actuator.status_code == 201, actuator.text

    res = client.post(f"/devices/{actuator.json()['id']}/data", json={"value": 1})
    assert res.status_code == 202
    assert res.json() == {"device_id": actuator.json()["id"], "accepted": True}

    res = client.post(f"/devices/{uuid.uuid4()}/data", json={"value": 1})
    assert res.status_code == 404


def test_connection_test_without_url(client, sensor_id):
    res = client.post(f"/devices/{sensor_id}/test")

    assert res.status_code == 200
    assert res.json()["success"] is False


def test_dashboard_summary_endpoint(client, sensor_id):
    add_threshold(client, sensor_id, "MINIMUM", "ALERT", "15")
    client.post("/readings", json={"sensor_id": sensor_id, "value": "12"})

    body = client.get("/dashboard/summary").json()

    assert body["stats"]["sensors"] == {"total": 1, "active": 1, "inactive": 0}
    assert body["stats"]["alerts_active"] == 1
    assert body["stats"]["readings_today"] == 1
    assert len(body["latest_alerts"]) == 1


def test_websocket_receives_alert_events(client, sensor_id):
    add_threshold(client, sensor_id, "MINIMUM", "ALERT", "15")

    with client.websocket_connect("/ws/alerts") as ws:
        assert ws.receive_json()["type"] == "WS_CONNECTED"

        client.post("/readings", json={"sensor_id": sensor_id, "value": "12"})
        event = ws.receive_json()

    assert event["type"] == "ALERT_CREATED"
    assert event["data"]["alert"]["sensor_id"] == sensor_id


def test_api_key_protects_writes(client, sensor_id, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "s3cret")
    payload = {"sensor_id": sensor_id, "kind": "MINIMUM", "severity": "ALERT", "value": "15"}

    res = client.post("/thresholds", json=payload)
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "UNAUTHORIZED"

    res = client.post("/thresholds", json=payload, headers={"Authorization": "Bearer s3cret"})
    assert res.status_code == 201

    # lecture libre
    assert client.get("/thresholds", params={"sensor_id": sensor_id}).status_code == 200


def test_rate_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_RPM", 2)
    rate_limiter.reset()
    try:
        codes = [client.get("/alerts/dashboard").status_code for _ in range(3)]
    finally:
        rate_limiter.reset()

    assert codes == [200, 200, 429]


def test_websocket_sensor_filter(client, sensor_id):
    add_threshold(client, sensor_id, "MAXIMUM", "ALERT", "30")
    other = str(uuid.uuid4())

    with client.websocket_connect(f"/ws/alerts?sensor_id={other}") as filtered, client.websocket_connect(
        f"/ws/alerts?sensor_id={sensor_id}"
    ) as watching:
        assert filtered.receive_json()["data"]["sensor_id"] == other
        watching.receive_json()

        client.post("/readings", json={"sensor_id": sensor_id, "value": "31"})
        assert watching.receive_json()["type"] == "ALERT_CREATED"

        filtered.send_text("ping")
        # seul le PONG arrive : l’alerte d’une autre sonde a été filtrée
        assert filtered.receive_json()["type"] == "PONG"


def test_storage_failure_maps_to_500_and_keeps_no_reading(client, sensor_id, monkeypatch):
    add_threshold(client, sensor_id, "MINIMUM", "ALERT", "15")

    async def broken_create_alert(self, alert):
        with storage_guard("alert.create"):
            raise OperationalError("INSERT INTO alerts", {}, Exception("disk full"))

    monkeypatch.setattr(AlertRepository, "create_alert", broken_create_alert)

    res = client.post("/readings", json={"sensor_id": sensor_id, "value": "12.5"})

    assert res.status_code == 500
    error = res.json()["error"]
    assert error["code"] == "STORAGE_FAILURE"
    assert error["details"]["operation"] == "alert.create"
    assert client.get("/readings").json()["meta"]["total"] == 0
    assert client.get("/alerts/dashboard").json() == []


def test_actuator_state_endpoints(client, sensor_id):
    location_id = client.get(f"/sensors/{sensor_id}").json()["location_id"]
    actuator_id = client.post(
        "/actuators",
        json={"name": "Lampe serre", "location_id": location_id, "actuator_type": "DIMMABLE_BULB"},
    ).json()["id"]

    state = client.get(f"/actuators/{actuator_id}/state").json()
    assert (state["is_on"], state["percentage"]) == (False, 0)

    res = client.put(f"/actuators/{actuator_id}/state", json={"is_on": True, "percentage": 70})
    assert res.status_code == 200
    assert (res.json()["is_on"], res.json()["percentage"]) == (True, 70)

    res = client.put(f"/actuators/{actuator_id}/state", json={"is_on": True})
    assert res.status_code == 400

    res = client.put(f"/actuators/{actuator_id}/state", json={"is_on": True, "percentage": 150})
    assert res.status_code == 422

    assert client.get(f"/actuators/{sensor_id}/state").status_code == 404


def test_force_pull_requires_http_pull_sensor(client, sensor_id):
    res = client.post(f"/sensors/{sensor_id}/force-pull")

    assert res.status_code == 400
    assert res.json()["error"]["details"]["channel"] == "HTTP_PUSH"
