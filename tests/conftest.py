"""
Shared fixtures.

Everything runs against the in-memory backends, so no Firebase project or
network is needed.
"""

import pytest
from fastapi.testclient import TestClient

from zonealert.config import Config
from zonealert.main import create_app
from zonealert.services import wire_services
from zonealert.storage import (
    MemoryDocumentStore,
    MemoryIdentityProvider,
    MemoryMessenger,
    MemoryRealtimeStore,
)


# ============================================================
# SERVICES
# ============================================================

@pytest.fixture
def container():
    """Fresh service graph on empty in-memory stores."""
    return wire_services(
        MemoryDocumentStore(),
        MemoryRealtimeStore(),
        MemoryMessenger(),
        MemoryIdentityProvider(),
        Config,
    )


@pytest.fixture
def client(container):
    """API client. The lifespan (scheduler, banner) is not run."""
    return TestClient(create_app(container))


# ============================================================
# API HELPERS
# ============================================================

class Farm:
    """A registered farmer with one farm, one zone and one sensor."""

    def __init__(self, client: TestClient, email: str = "ama@farm.example"):
        self.client = client

        response = client.post("/api/auth/register", json={
            "email": email,
            "password": "secret123",
            "name": "Ama Mensah",
        })
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        self.farmer_id = data["farmer_id"]
        self.api_key = data["api_key"]
        self.headers = {"Authorization": f"Bearer {data['token']}"}

        self.farm_id = self.create_farm("Green Acres")
        self.zone_id = self.create_zone("North paddock")
        self.sensor_id = self.register_sensor("LIDAR-001")

    def create_farm(self, name: str) -> str:
        response = self.client.post("/api/farms", headers=self.headers, json={
            "farm_name": name,
            "location": {"address": "Kumasi road", "coordinates": {"latitude": 6.7, "longitude": -1.6}},
            "total_area": 12.5,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]["farm_id"]

    def create_zone(self, name: str, farm_id: str = None) -> str:
        response = self.client.post("/api/zones", headers=self.headers, json={
            "farm_id": farm_id or self.farm_id,
            "zone_name": name,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]["zone_id"]

    def register_sensor(self, device_id: str, zone_id: str = None, farm_id: str = None, **extra) -> str:
        response = self.client.post("/api/sensors/register", headers=self.headers, json={
            "device_id": device_id,
            "sensor_type": "LIDAR",
            "farm_id": farm_id or self.farm_id,
            "zone_id": zone_id or self.zone_id,
            "location_description": "North fence, gate 2",
            "coordinates": {"latitude": 6.7, "longitude": -1.6},
            **extra,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]["sensor_id"]

    def add_livestock(self, tag: str, zone_id: str = None, farm_id: str = None):
        return self.client.post("/api/livestock", headers=self.headers, json={
            "farm_id": farm_id or self.farm_id,
            "zone_id": zone_id or self.zone_id,
            "animal_type": "Goat",
            "identification_tag": tag,
        })

    def post_reading(self, distance: float, sensor_id: str = None, api_key: str = None, **extra):
        return self.client.post("/api/sensors/reading", json={
            "sensor_id": sensor_id or self.sensor_id,
            "distance_measured": distance,
            "sensor_type": "LIDAR",
            "api_key": api_key or Config.IOT_API_KEY,
            **extra,
        })

    def get(self, path: str, **params):
        return self.client.get(path, headers=self.headers, params=params)

    def farm(self) -> dict:
        return self.get(f"/api/farms/{self.farm_id}").json()["data"]

    def zone(self, zone_id: str = None) -> dict:
        return self.get(f"/api/zones/{zone_id or self.zone_id}").json()["data"]

    def sensor(self, sensor_id: str = None) -> dict:
        return self.get(f"/api/sensors/{sensor_id or self.sensor_id}").json()["data"]

    def alerts(self, **params) -> list:
        return self.get("/api/alerts", **params).json()["data"]


@pytest.fixture
def farm(client):
    return Farm(client)
