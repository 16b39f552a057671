# tests/test_api.py
"""HTTP + WebSocket tests against the full FastAPI app (MQTT disabled)."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.schemas.visitor_event import VisitorEventType
from app.services.broadcast import BroadcastGateway
from app.utils.security import hash_admin_password

PASSWORD = "s3cret-admin"
PASSWORD_HASH = hash_admin_password(PASSWORD, rounds=4)
NOW = datetime(2026, 10, 19, 5, 0, 0)   # 12:00 in Jakarta


class RecordingGateway(BroadcastGateway):
    """Captures published messages instead of sending them."""

    def __init__(self):
        super().__init__()
        self.published = []

    def publish(self, messages):
        self.published.append([name for name, _ in messages])
        return None


def make_client(engine, **overrides):
    options = dict(MQTT_ENABLED=False, ADMIN_PASSWORD_HASH=PASSWORD_HASH, DEFAULT_MAX_CAPACITY=10)
    options.update(overrides)
    gateway = RecordingGateway()
    app = create_app(Settings(**options), engine=engine, gateway=gateway)
    return TestClient(app), app, gateway


@pytest.fixture
def api(engine):
    client, app, gateway = make_client(engine)
    with client:
        yield client, app, gateway


class TestReadEndpoints:
    def test_dashboard_snapshot(self, api):
        client, _, _ = api
        resp = client.get("/api/dashboard")
        assert resp.status_code == 200
        assert resp.json() == {
            "currentVisitors": 0, "maxCapacity": 10, "availableSeats": 10,
            "occupancyRate": 0, "status": "open", "isOpen": True,
        }

    def test_hourly_stats_for_date(self, api):
        client, app, _ = api
        app.state.ledger.record_visitor_event(VisitorEventType.ENTRY, NOW)

        resp = client.get("/api/stats/hourly", params={"date": "2026-10-19"})
        assert resp.status_code == 200
        stats = resp.json()
        assert len(stats) == 24
        assert stats[12] == {"hour": 12, "entryCount": 1, "exitCount": 0, "peakVisitors": 1}

    def test_hourly_stats_today_has_24_rows(self, api):
        client, _, _ = api
        assert len(client.get("/api/stats/hourly").json()) == 24

    def test_hourly_stats_bad_date(self, api):
        client, _, _ = api
        resp = client.get("/api/stats/hourly", params={"date": "yesterday"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    def test_recent_events(self, api):
        client, app, _ = api
        for kind in (VisitorEventType.ENTRY, VisitorEventType.EXIT):
            app.state.ledger.append_event(kind, timestamp=NOW)

        events = client.get("/api/events/recent", params={"limit": 1}).json()
        assert len(events) == 1
        assert events[0]["type"] == "exit"
        assert events[0]["timestamp"].endswith("+07:00")

    def test_health(self, api):
        client, _, _ = api
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["mqtt"] == "disabled"


class TestCapacityEndpoint:
    def test_wrong_password_changes_nothing(self, api):
        client, app, gateway = api
        resp = client.post("/api/capacity", json={"capacity": 50, "password": "nope"})

        assert resp.status_code == 401
        assert resp.json()["error"] == "unauthorized"
        assert app.state.ledger.get_current_status().max_capacity == 10
        assert gateway.published == []

    def test_missing_password(self, api):
        client, _, gateway = api
        assert client.post("/api/capacity", json={"capacity": 50}).status_code == 401
        assert gateway.published == []

    def test_valid_change_broadcasts(self, api):
        client, app, gateway = api
        resp = client.post("/api/capacity", json={"capacity": 50, "password": PASSWORD})

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "capacity": 50}
        assert app.state.ledger.get_current_status().max_capacity == 50
        assert gateway.published == [["dashboard:update", "capacity:updated"]]

    def test_capacity_below_one_rejected(self, api):
        client, app, gateway = api
        resp = client.post("/api/capacity", json={"capacity": 0, "password": PASSWORD})

        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_capacity"
        assert app.state.ledger.get_current_status().max_capacity == 10
        assert gateway.published == []

    def test_non_numeric_capacity(self, api):
        client, _, _ = api
        resp = client.post("/api/capacity", json={"capacity": "lots", "password": PASSWORD})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    def test_rejected_when_no_hash_configured(self, engine):
        client, _, _ = make_client(engine, ADMIN_PASSWORD_HASH=None)
        with client:
            resp = client.post("/api/capacity", json={"capacity": 50, "password": PASSWORD})
        assert resp.status_code == 401


class TestToggleEndpoint:
    def test_close_restaurant(self, api):
        client, _, gateway = api
        resp = client.post("/api/status/toggle", json={"isOpen": False})

        assert resp.status_code == 200
        assert resp.json()["status"] == "closed"
        assert gateway.published == [["dashboard:update", "status:updated"]]

    def test_non_boolean_rejected(self, api):
        client, app, gateway = api
        resp = client.post("/api/status/toggle", json={"isOpen": "no"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"
        assert app.state.ledger.get_current_status().is_open is True
        assert gateway.published == []

    def test_password_required_when_configured(self, engine):
        client, app, gateway = make_client(engine, TOGGLE_REQUIRES_PASSWORD=True)
        with client:
            denied = client.post("/api/status/toggle", json={"isOpen": False, "password": "x"})
            allowed = client.post("/api/status/toggle", json={"isOpen": False, "password": PASSWORD})

        assert denied.status_code == 401
        assert allowed.status_code == 200
        assert gateway.published == [["dashboard:update", "status:updated"]]


class TestStartup:
    def test_startup_reconciles_stale_count(self, engine, session_factory):
        from app.services.ledger import OccupancyLedger
        seed = OccupancyLedger(session_factory, "Asia/Jakarta")
        seed.bootstrap(10)
        seed.overwrite_current_visitors(7)

        client, _, _ = make_client(engine)
        with client:
            assert client.get("/api/dashboard").json()["currentVisitors"] == 0

    def test_shutdown_waits_for_liveness_task(self, engine, monkeypatch):
        from app.services.sensor_ingestor import SensorIngestor
        monkeypatch.setattr(SensorIngestor, "start", lambda self: None)
        monkeypatch.setattr(SensorIngestor, "stop", lambda self: None)

        client, app, _ = make_client(engine, MQTT_ENABLED=True, FEED_CHECK_INTERVAL_SECONDS=3600)
        with client:
            task = app.state.liveness_task
            assert task is not None and not task.done()

        assert task.cancelled()
        assert app.state.liveness_task is None


class TestLiveChannel:
    def test_new_subscriber_gets_snapshot_then_hourly(self, engine):
        app = create_app(Settings(MQTT_ENABLED=False, DEFAULT_MAX_CAPACITY=10), engine=engine)
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                first = ws.receive_json()
                second = ws.receive_json()

        assert first["event"] == "dashboard:update"
        assert first["data"]["maxCapacity"] == 10
        assert second["event"] == "stats:hourly"
        assert len(second["data"]) == 24
