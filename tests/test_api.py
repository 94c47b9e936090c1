"""
Admin API Tests
Runs the FastAPI app with its lifespan against a temporary SQLite database
"""
from datetime import timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from authguard.api import create_app
from authguard.container import build_services
from authguard.utils.config import Config, DatabaseConfig, MonitoringConfig, ServerConfig
from authguard.utils.timeutils import utcnow
from conftest import make_event, seed_events

ADMINS = ["sec@example.com"]


def make_config(tmp_path, **kwargs) -> Config:
    return Config(
        database=DatabaseConfig(url=f"sqlite:///{tmp_path}/api.db"),
        monitoring=MonitoringConfig(autostart=False, admin_emails=ADMINS),
        **kwargs
    )


@pytest.fixture
def services(tmp_path, notifier):
    return build_services(make_config(tmp_path), notifier=notifier)


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as client:
        yield client


class TestHealth:
    """Tests for GET /health"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["counter_store"]["backend"] == "memory"
        assert data["dependencies"]["database"]["status"] == "healthy"
        assert data["dependencies"]["scheduler"]["status"] == "stopped"


class TestThresholdEndpoints:
    """Tests for /security/thresholds"""

    def test_list_thresholds(self, client):
        response = client.get("/security/thresholds")

        assert response.status_code == 200
        names = [t["name"] for t in response.json()]
        assert "brute_force_detection" in names
        assert len(names) == 6

    def test_patch_threshold(self, client):
        response = client.patch("/security/thresholds/brute_force_detection", json={"threshold": 25})

        assert response.status_code == 200
        assert response.json()["threshold"] == 25
        assert response.json()["time_window_minutes"] == 15

    def test_patch_unknown_threshold(self, client):
        response = client.patch("/security/thresholds/nope", json={"threshold": 1})
        assert response.status_code == 404

    def test_patch_invalid_value(self, client):
        response = client.patch("/security/thresholds/brute_force_detection", json={"time_window_minutes": 0})
        assert response.status_code == 422

    def test_patch_null_flag_rejected(self, client):
        response = client.patch("/security/thresholds/brute_force_detection", json={"enabled": None})

        assert response.status_code == 422
        assert client.get("/security/thresholds").status_code == 200


class TestAlertEndpoints:
    """Monitoring cycle, alert listing and acknowledgement"""

    def test_run_cycle_raises_alert(self, client, services, notifier):
        events = [make_event(ip_address="198.51.100.66", minutes_ago=i * 0.5) for i in range(15)]
        client.portal.call(seed_events, services.event_store, events)

        response = client.post("/security/scheduler/run")

        assert response.status_code == 200
        result = response.json()
        assert result["succeeded"] is True
        assert result["alerts_triggered"] == 1
        assert result["patterns_detected"] == 1

        alerts = client.get("/security/alerts").json()
        assert [a["type"] for a in alerts] == ["brute_force_detection"]
        assert notifier.send_security_alert.await_count == len(ADMINS)

        alert_id = alerts[0]["id"]
        response = client.post(f"/security/alerts/{alert_id}/acknowledge", json={"acknowledged_by": "ops"})
        assert response.status_code == 200
        assert response.json()["acknowledged"] is True
        assert response.json()["acknowledged_by"] == "ops"

        assert client.get("/security/alerts", params={"include_acknowledged": False}).json() == []
        assert client.post("/security/alerts/clear-acknowledged").json() == {"cleared": 1}

    def test_acknowledge_unknown_alert(self, client):
        response = client.post("/security/alerts/alert_missing/acknowledge", json={"acknowledged_by": "ops"})
        assert response.status_code == 404

    def test_delete_unknown_alert(self, client):
        assert client.delete("/security/alerts/alert_missing").status_code == 404

    def test_scheduler_status(self, client):
        status = client.get("/security/scheduler").json()

        assert status["is_running"] is False
        assert status["next_run_time"] is None
        assert status["cycles_completed"] == 0


class TestEventEndpoints:
    """Tests for /security/events and /security/report"""

    def test_query_events(self, client, services):
        client.portal.call(seed_events, services.event_store, [
            make_event(email="a@example.com"),
            make_event(email="b@example.com", success=True),
        ])

        response = client.get("/security/events", params={"email": "a@example.com"})
        assert response.status_code == 200
        assert [e["email"] for e in response.json()] == ["a@example.com"]

        failed = client.get("/security/events", params={"success": False, "event_type": "LOGIN_ATTEMPT"}).json()
        assert len(failed) == 1

    def test_query_events_with_offset_dates(self, client, services):
        client.portal.call(seed_events, services.event_store, [make_event(minutes_ago=30)])
        start = (utcnow() - timedelta(hours=1)).replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=5)))

        response = client.get("/security/events", params={"start_date": start.isoformat()})

        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_report(self, client, services):
        client.portal.call(seed_events, services.event_store, [make_event(), make_event(success=True)])

        report = client.get("/security/report", params={"hours": 1}).json()

        assert report["total_events"] == 2
        assert report["failed_events"] == 1
        assert report["events_by_type"] == {"LOGIN_ATTEMPT": 2}


class TestLockoutEndpoints:
    """Tests for /security/lockouts"""

    def test_lockout_status_and_clear(self, client, services):
        email = "victim@example.com"
        client.portal.call(services.lockouts.set_account_lockout, email, utcnow() + timedelta(minutes=30))

        status = client.get(f"/security/lockouts/{email}").json()
        assert status["locked"] is True
        assert status["retry_after_seconds"] > 0

        response = client.delete(f"/security/lockouts/{email}", params={"admin_id": "admin-1"})
        assert response.json() == {"email": email, "was_locked": True}

        assert client.get(f"/security/lockouts/{email}").json()["locked"] is False
        assert client.delete(f"/security/lockouts/{email}").json()["was_locked"] is False


class TestAdminKey:
    """X-API-Key enforcement"""

    def test_admin_key_required(self, tmp_path, notifier):
        config = make_config(tmp_path, server=ServerConfig(admin_api_key="s3cret"))
        services = build_services(config, notifier=notifier)

        with TestClient(create_app(services=services)) as client:
            assert client.get("/health").status_code == 200
            assert client.get("/security/thresholds").status_code == 401
            assert client.get("/security/thresholds", headers={"X-API-Key": "wrong"}).status_code == 401
            assert client.get("/security/thresholds", headers={"X-API-Key": "s3cret"}).status_code == 200
