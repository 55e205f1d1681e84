"""
End-to-end API tests.

Each test starts from a registered farmer with one farm, zone and sensor
(see the `farm` fixture) on the in-memory backends.
"""

import time
import warnings
from pathlib import Path

import pytest

from conftest import Farm
from zonealert import main


# ============================================================
# READINGS AND BREACHES
# ============================================================

class TestReadings:

    def test_breach_creates_alert_and_counts_it(self, farm):
        response = farm.post_reading(30)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "alert"
        assert body["data"]["severity"] == "high"
        assert body["data"]["threshold"] == 50
        assert body["data"]["alert_id"]

        alerts = farm.alerts()
        assert len(alerts) == 1
        assert alerts[0]["alert_id"] == body["data"]["alert_id"]
        assert alerts[0]["trigger_distance"] == 30
        assert farm.farm()["active_alerts"] == 1

        sensor = farm.sensor()
        assert sensor["total_readings_today"] == 1
        assert sensor["alerts_triggered_today"] == 1
        assert sensor["last_reading"] == 30

    def test_close_breach_is_critical(self, farm):
        data = farm.post_reading(10).json()["data"]

        assert data["status"] == "alert"
        assert data["severity"] == "critical"
        assert farm.alerts()[0]["severity"] == "critical"

    @pytest.mark.parametrize("distance", [50, 60, 300])
    def test_reading_at_or_beyond_threshold_is_normal(self, farm, distance):
        data = farm.post_reading(distance).json()["data"]

        assert data["status"] == "normal"
        assert data["severity"] is None
        assert data["alert_id"] is None
        assert farm.alerts() == []
        assert farm.farm()["active_alerts"] == 0

    def test_sensor_threshold_overrides_default(self, farm):
        sensor_id = farm.register_sensor("LIDAR-002", boundary_threshold=80)

        data = farm.post_reading(70, sensor_id=sensor_id).json()["data"]

        assert data["status"] == "alert"
        assert data["threshold"] == 80

    def test_every_breach_is_recorded(self, farm):
        farm.post_reading(30)
        farm.post_reading(20)

        assert len(farm.alerts()) == 2
        assert farm.farm()["active_alerts"] == 2

    def test_header_api_key(self, farm):
        response = farm.client.post(
            "/api/sensors/reading",
            json={"sensor_id": farm.sensor_id, "distance_measured": 72, "sensor_type": "LIDAR"},
            headers={"x-api-key": farm.api_key},
        )

        assert response.status_code == 200

    def test_farmer_key_works_for_own_sensor(self, farm):
        response = farm.post_reading(72, api_key=farm.api_key)

        assert response.status_code == 200

    def test_history_and_live_status(self, farm):
        farm.post_reading(72)
        farm.post_reading(30)

        history = farm.get(f"/api/sensors/readings/{farm.sensor_id}")
        assert history.status_code == 200
        readings = history.json()["data"]["readings"]
        assert len(readings) == 2
        assert {r["distance_measured"] for r in readings} == {72, 30}
        assert readings[0]["timestamp"] >= readings[1]["timestamp"]

        live = farm.get(f"/api/sensors/live/{farm.sensor_id}").json()["data"]
        assert live["last_reading"] == 30
        assert live["status"] == "alert"
        assert live["is_online"] is True
        assert live["is_stale"] is False

    def test_history_range_is_capped(self, farm):
        response = farm.get(
            f"/api/sensors/readings/{farm.sensor_id}",
            start_date="2024-01-01T00:00:00Z",
            end_date="2024-03-01T00:00:00Z",
        )

        assert response.status_code == 400

    def test_online_filter_uses_live_status(self, farm):
        idle = farm.register_sensor("LIDAR-002")
        farm.post_reading(72)

        online = farm.get("/api/sensors", status="online").json()["data"]
        offline = farm.get("/api/sensors", status="offline").json()["data"]

        assert [s["sensor_id"] for s in online] == [farm.sensor_id]
        assert idle in [s["sensor_id"] for s in offline]


class TestReadingRejections:

    def test_invalid_api_key(self, farm):
        response = farm.post_reading(30, api_key="not-a-key")

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert farm.alerts() == []

    def test_missing_api_key(self, farm):
        response = farm.client.post("/api/sensors/reading", json={
            "sensor_id": farm.sensor_id,
            "distance_measured": 30,
            "sensor_type": "LIDAR",
        })

        assert response.status_code == 401

    def test_unknown_sensor(self, farm):
        response = farm.post_reading(30, sensor_id="no-such-sensor")

        assert response.status_code == 404

    def test_deactivated_sensor_is_refused(self, farm):
        response = farm.client.delete(f"/api/sensors/{farm.sensor_id}", headers=farm.headers)
        assert response.status_code == 200
        assert farm.farm()["sensors_count"] == 0

        response = farm.post_reading(30)

        assert response.status_code == 403
        assert farm.alerts() == []

    def test_other_farmers_key_is_refused(self, client, farm):
        other = Farm(client, email="kofi@farm.example")

        response = farm.post_reading(30, api_key=other.api_key)

        assert response.status_code == 403

    def test_validation_error_envelope(self, farm):
        response = farm.post_reading(-5)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["errors"][0]["field"] == "distance_measured"


class TestBatchAndDevice:

    def test_batch_upload(self, farm):
        now = int(time.time() * 1000)
        response = farm.client.post("/api/sensors/batch", json={
            "api_key": farm.api_key,
            "readings": [
                {"sensor_id": farm.sensor_id, "distance_measured": 72, "sensor_type": "LIDAR",
                 "timestamp": now - 60000},
                {"sensor_id": farm.sensor_id, "distance_measured": 30, "sensor_type": "LIDAR",
                 "timestamp": now - 30000},
                {"sensor_id": "no-such-sensor", "distance_measured": 30, "sensor_type": "LIDAR"},
            ],
        })

        assert response.status_code == 200
        assert response.json()["data"] == {"received": 3, "accepted": 2, "rejected": 1, "breaches": 1}
        assert farm.sensor()["total_readings_today"] == 2
        assert len(farm.alerts()) == 1

        live = farm.get(f"/api/sensors/live/{farm.sensor_id}").json()["data"]
        assert live["last_reading"] == 30

    def test_device_alert_and_heartbeat(self, farm):
        response = farm.client.post("/api/alerts", json={
            "deviceId": farm.sensor_id,
            "alert": True,
            "distance": 18.2,
            "api_key": farm.api_key,
        })
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["alert"] is True
        assert data["severity"] == "critical"
        assert data["alert_id"]

        response = farm.client.post("/api/alerts", json={
            "deviceId": farm.sensor_id,
            "alert": False,
            "distance": 120,
            "api_key": farm.api_key,
        })
        assert response.status_code == 201
        assert response.json()["data"]["alert_id"] is None

        assert len(farm.alerts()) == 1
        assert farm.farm()["active_alerts"] == 1

    def test_low_battery_raises_alert(self, farm):
        response = farm.client.put(
            f"/api/sensors/{farm.sensor_id}/battery",
            json={"battery_level": 12, "api_key": farm.api_key},
        )

        assert response.status_code == 200
        assert response.json()["data"]["low_battery"] is True
        alerts = farm.alerts(alert_type="low_battery")
        assert len(alerts) == 1
        assert alerts[0]["severity"] == "medium"


# ============================================================
# ALERTS
# ============================================================

class TestAlerts:

    def test_resolve_is_idempotent(self, farm):
        alert_id = farm.post_reading(30).json()["data"]["alert_id"]

        first = farm.client.put(f"/api/alerts/{alert_id}/resolve", headers=farm.headers)
        second = farm.client.put(f"/api/alerts/{alert_id}/resolve", headers=farm.headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["data"]["is_resolved"] is True
        assert farm.farm()["active_alerts"] == 0
        assert farm.alerts(is_resolved=False) == []

    def test_delete_alert(self, farm):
        alert_id = farm.post_reading(30).json()["data"]["alert_id"]

        response = farm.client.delete(f"/api/alerts/{alert_id}", headers=farm.headers)

        assert response.status_code == 200
        assert farm.alerts() == []
        assert farm.farm()["active_alerts"] == 0
        assert farm.get(f"/api/alerts/{alert_id}").status_code == 404

    def test_recent_and_by_device(self, farm):
        farm.post_reading(30)

        recent = farm.get("/api/alerts/recent", hours=1).json()["data"]
        by_device = farm.get(f"/api/alerts/device/{farm.sensor_id}").json()["data"]

        assert len(recent) == 1
        assert len(by_device) == 1

    def test_other_farmer_cannot_see_alert(self, client, farm):
        alert_id = farm.post_reading(30).json()["data"]["alert_id"]
        other = Farm(client, email="kofi@farm.example")

        assert other.get(f"/api/alerts/{alert_id}").status_code == 403
        assert other.alerts() == []

    def test_dashboard_counts_alerts(self, farm):
        farm.post_reading(30)
        farm.post_reading(10)

        stats = farm.get("/api/analytics/dashboard", time_range="today").json()["data"]

        assert stats["total_alerts"] == 2
        assert stats["min_distance"] == 10
        assert stats["max_distance"] == 30

    def test_heatmap_total_matches_alerts(self, farm):
        farm.post_reading(30)

        result = farm.get("/api/analytics/heatmap", weeks=1).json()["data"]

        assert result["total"] == 1
        assert len(result["heatmap"]) == 7


# ============================================================
# FARMS, ZONES AND LIVESTOCK
# ============================================================

class TestLivestock:

    def test_create_and_delete_adjust_counters(self, farm):
        response = farm.add_livestock("GT-001")
        assert response.status_code == 201
        livestock_id = response.json()["data"]["livestock_id"]

        assert farm.farm()["livestock_count"] == 1
        assert farm.zone()["current_livestock_count"] == 1

        response = farm.client.delete(f"/api/livestock/{livestock_id}", headers=farm.headers)
        assert response.status_code == 200

        assert farm.farm()["livestock_count"] == 0
        assert farm.zone()["current_livestock_count"] == 0

    def test_duplicate_tag_conflicts(self, farm):
        farm.add_livestock("GT-001")

        response = farm.add_livestock("GT-001")

        assert response.status_code == 409
        assert farm.farm()["livestock_count"] == 1

    def test_invalid_tag(self, farm):
        response = farm.add_livestock("!!bad")

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "identification_tag"

    def test_zone_move_reparents_counters(self, farm):
        south = farm.create_zone("South paddock")
        livestock_id = farm.add_livestock("GT-001").json()["data"]["livestock_id"]

        response = farm.client.put(
            f"/api/livestock/{livestock_id}", headers=farm.headers, json={"zone_id": south}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["zone_name"] == "South paddock"
        assert len(data["movement_history"]) == 1
        assert farm.zone()["current_livestock_count"] == 0
        assert farm.zone(south)["current_livestock_count"] == 1
        assert farm.farm()["livestock_count"] == 1

    def test_counters_match_rows_after_mixed_operations(self, farm):
        south = farm.create_zone("South paddock")
        ids = [farm.add_livestock(f"GT-{n:03d}").json()["data"]["livestock_id"] for n in range(5)]

        for livestock_id in ids[:3]:
            farm.client.put(f"/api/livestock/{livestock_id}", headers=farm.headers, json={"zone_id": south})
        farm.client.delete(f"/api/livestock/{ids[0]}", headers=farm.headers)
        farm.client.delete(f"/api/livestock/{ids[4]}", headers=farm.headers)
        farm.client.put(f"/api/livestock/{ids[1]}", headers=farm.headers, json={"zone_id": farm.zone_id})

        rows = farm.get("/api/livestock", farm_id=farm.farm_id).json()["data"]["livestock"]
        by_zone = {zone: sum(1 for r in rows if r["zone_id"] == zone) for zone in (farm.zone_id, south)}

        assert farm.farm()["livestock_count"] == len(rows) == 3
        assert farm.zone()["current_livestock_count"] == by_zone[farm.zone_id]
        assert farm.zone(south)["current_livestock_count"] == by_zone[south]

    def test_sighting_updates_boundary_status(self, farm):
        livestock_id = farm.add_livestock("GT-001").json()["data"]["livestock_id"]

        farm.post_reading(30, livestock_id=livestock_id)

        animal = farm.get(f"/api/livestock/{livestock_id}").json()["data"]
        assert animal["current_status"] == "outside_boundary"
        assert animal["last_known_position"]["distance_from_boundary"] == 30
        assert len(animal["recent_alerts"]) == 1


class TestFarms:

    def test_farm_with_zones_cannot_be_deleted(self, farm):
        response = farm.client.delete(f"/api/farms/{farm.farm_id}", headers=farm.headers)

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_empty_farm_delete(self, farm):
        farm_id = farm.create_farm("Back lot")

        response = farm.client.delete(f"/api/farms/{farm_id}", headers=farm.headers)

        assert response.status_code == 200
        assert farm.get("/api/auth/me").json()["data"]["farms_count"] == 1

    def test_counters_on_creation(self, farm):
        data = farm.farm()

        assert data["zones_count"] == 1
        assert data["sensors_count"] == 1
        assert farm.zone()["sensors_count"] == 1

    def test_other_farmer_is_forbidden(self, client, farm):
        other = Farm(client, email="kofi@farm.example")

        assert other.get(f"/api/farms/{farm.farm_id}").status_code == 403
        assert other.get(f"/api/sensors/{farm.sensor_id}").status_code == 403

    def test_zone_on_foreign_farm_is_rejected(self, client, farm):
        other = Farm(client, email="kofi@farm.example")

        response = farm.client.post("/api/sensors/register", headers=farm.headers, json={
            "device_id": "LIDAR-009",
            "sensor_type": "LIDAR",
            "farm_id": farm.farm_id,
            "zone_id": other.zone_id,
            "location_description": "Gate",
            "coordinates": {"latitude": 6.7, "longitude": -1.6},
        })

        assert response.status_code == 403


# ============================================================
# AUTH AND NOTIFICATIONS
# ============================================================

class TestAuth:

    def test_missing_token(self, client, farm):
        response = client.get(f"/api/farms/{farm.farm_id}")

        assert response.status_code == 401
        assert response.json()["message"] == "Authorization token required"

    def test_invalid_token(self, client):
        response = client.get("/api/farms", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_login_and_me(self, client, farm):
        response = client.post("/api/auth/login", json={
            "email": "ama@farm.example",
            "password": "secret123",
        })
        assert response.status_code == 200
        token = response.json()["data"]["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200
        assert me.json()["data"]["farmer_id"] == farm.farmer_id
        assert me.json()["data"]["last_login"] is not None

    def test_wrong_password(self, client, farm):
        response = client.post("/api/auth/login", json={
            "email": "ama@farm.example",
            "password": "wrong-one",
        })

        assert response.status_code == 401

    def test_duplicate_registration(self, client, farm):
        response = client.post("/api/auth/register", json={
            "email": "ama@farm.example",
            "password": "secret123",
            "name": "Someone Else",
        })

        assert response.status_code == 409

    def test_account_with_farms_cannot_be_deleted(self, farm):
        response = farm.client.delete("/api/auth/account", headers=farm.headers)

        assert response.status_code == 409


class TestNotifications:

    def test_breach_lands_in_inbox(self, farm):
        farm.post_reading(30)

        inbox = farm.get("/api/notifications/inbox").json()["data"]
        assert inbox["unread"] == 1
        notification_id = inbox["notifications"][0]["notification_id"]

        response = farm.client.put(
            f"/api/notifications/inbox/{notification_id}/read", headers=farm.headers
        )
        assert response.status_code == 200
        assert farm.get("/api/notifications/inbox").json()["data"]["unread"] == 0

    def test_subscribe_and_send(self, farm, container):
        response = farm.client.post(
            "/api/notifications/subscribe", headers=farm.headers, json={"token": "fcm-token-1"}
        )
        assert response.status_code == 200
        topic = f"livestock_alerts_{farm.farmer_id}"
        assert response.json()["data"]["topic"] == topic

        response = farm.client.post("/api/notifications/send", headers=farm.headers, json={
            "title": "Gate open",
            "body": "North gate left open",
        })
        assert response.status_code == 200

        assert container.messenger.topics[topic] == {"fcm-token-1"}
        assert container.messenger.sent[-1]["title"] == "Gate open"
        assert container.messenger.sent[-1]["topic"] == topic
        stats = farm.get("/api/notifications/stats").json()["data"]
        assert stats["total_sent"] == 1
        assert stats["active_subscriptions"] == 1

    def test_requires_token(self, client):
        response = client.get("/api/notifications/inbox")

        assert response.status_code == 401


class TestNotificationIsolation:
    """Two farmers, each with a subscribed phone."""

    @pytest.fixture
    def farms(self, client):
        ama = Farm(client)
        kofi = Farm(client, email="kofi@farm.example")
        for owner, token in ((ama, "ama-phone"), (kofi, "kofi-phone")):
            response = client.post(
                "/api/notifications/subscribe", headers=owner.headers, json={"token": token}
            )
            assert response.status_code == 200
        return ama, kofi

    @staticmethod
    def recipients(messenger, message) -> set:
        if message["token"]:
            return {message["token"]}
        return messenger.topics.get(message["topic"], set())

    def test_breach_reaches_only_the_owner(self, farms, container):
        ama, kofi = farms

        ama.post_reading(10)

        messenger = container.messenger
        assert len(messenger.sent) == 1
        assert self.recipients(messenger, messenger.sent[0]) == {"ama-phone"}
        assert kofi.get("/api/notifications/inbox").json()["data"]["unread"] == 0

    def test_cannot_subscribe_to_another_farmers_topic(self, farms):
        ama, kofi = farms

        response = kofi.client.post("/api/notifications/subscribe", headers=kofi.headers, json={
            "token": "kofi-tablet",
            "topic": f"livestock_alerts_{ama.farmer_id}",
        })

        assert response.status_code == 403

    def test_subscriptions_are_scoped_to_caller(self, farms):
        ama, kofi = farms

        subs = kofi.get("/api/notifications/subscriptions").json()["data"]

        assert [s["token"] for s in subs] == ["kofi-phone"]

    def test_cannot_remove_another_farmers_device(self, farms, container):
        ama, kofi = farms

        response = kofi.client.delete("/api/notifications/subscriptions/ama-phone", headers=kofi.headers)
        assert response.status_code == 403

        response = kofi.client.post(
            "/api/notifications/unsubscribe", headers=kofi.headers, json={"token": "ama-phone"}
        )
        assert response.status_code == 403

        assert "ama-phone" in container.messenger.topics[f"livestock_alerts_{ama.farmer_id}"]
        assert len(ama.get("/api/notifications/subscriptions").json()["data"]) == 1

    def test_owner_can_remove_own_device(self, farms, container):
        ama, _ = farms

        response = ama.client.delete("/api/notifications/subscriptions/ama-phone", headers=ama.headers)

        assert response.status_code == 200
        assert container.messenger.topics[f"livestock_alerts_{ama.farmer_id}"] == set()
        assert ama.get("/api/notifications/subscriptions").json()["data"] == []

    def test_cannot_send_to_another_farmers_topic_or_device(self, farms, container):
        ama, kofi = farms
        message = {"title": "Hello", "body": "Not yours"}

        response = kofi.client.post("/api/notifications/send", headers=kofi.headers, json={
            **message, "topic": f"livestock_alerts_{ama.farmer_id}",
        })
        assert response.status_code == 403

        response = kofi.client.post("/api/notifications/send-to-device", headers=kofi.headers, json={
            **message, "token": "ama-phone",
        })
        assert response.status_code == 403

        response = kofi.client.post(
            "/api/notifications/test", headers=kofi.headers, json={"token": "ama-phone"}
        )
        assert response.status_code == 403

        assert container.messenger.sent == []

    def test_logs_are_scoped_to_sender(self, farms):
        ama, kofi = farms
        response = ama.client.post("/api/notifications/send-to-device", headers=ama.headers, json={
            "title": "Hello", "body": "Own phone", "token": "ama-phone",
        })
        assert response.status_code == 200

        assert len(ama.get("/api/notifications/logs").json()["data"]) == 1
        assert kofi.get("/api/notifications/logs").json()["data"] == []
        assert kofi.get("/api/notifications/stats").json()["data"]["total_sent"] == 0


# ============================================================
# ROOT
# ============================================================

class TestRoot:

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_app_module_compiles_without_warnings(self):
        source = Path(main.__file__).read_text(encoding="utf-8")

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(source, main.__file__, "exec")
