"""
Sensor Service
==============

Registration and management of boundary sensor units.

WHAT IT DOES:
------------
1. register()    - new unit on a zone; farm and zone sensors_count +1 in the
                   same batch; live status placeholder written
2. list_sensors() - sensors merged with their live status, filterable by
                   online/offline (a stale record counts as offline)
3. update()      - threshold, location, firmware
4. deactivate()  - soft delete: is_active=False, counters -1; history and
                   alerts stay, and the unit's readings are refused (403)
5. update_battery() - device report; below LOW_BATTERY_THRESHOLD a
                   low battery alert is recorded (failures swallowed)

Author: ZoneAlert Team
"""

import logging
from typing import Any, Optional

from zonealert.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from zonealert.models import RegisterSensorRequest, SensorStatusFilter, UpdateSensorRequest
from zonealert.services.alert_recorder import AlertRecorder
from zonealert.services.counters import CounterMaintainer, EntityType
from zonealert.services.device_keys import DeviceIdentity
from zonealert.services.farms import FarmService
from zonealert.services.live_status import LiveStatusTracker, is_stale, now_ms
from zonealert.services.threshold import DEFAULT_THRESHOLD
from zonealert.storage.base import Document, DocumentStore, new_document_id, utcnow

logger = logging.getLogger(__name__)

OFFLINE_PLACEHOLDER = {"is_online": False, "last_reading": 0, "status": "offline"}


class SensorService:
    """Sensor units: register, list, update, deactivate, battery."""

    def __init__(
        self,
        store: DocumentStore,
        live_status: LiveStatusTracker,
        recorder: AlertRecorder,
        counters: CounterMaintainer,
        farms: FarmService,
        default_threshold: float = DEFAULT_THRESHOLD,
        low_battery_threshold: float = 20,
    ):
        self.store = store
        self.live_status = live_status
        self.recorder = recorder
        self.counters = counters
        self.farms = farms
        self.default_threshold = default_threshold
        self.low_battery_threshold = low_battery_threshold

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_active_sensor(self, sensor_id: str) -> Document:
        """Sensor a device may write for. Deactivated units are refused."""
        sensor = await self.store.get("sensor_units", sensor_id)
        if sensor is None:
            raise NotFoundError("Sensor not found")
        if not sensor.data.get("is_active", True):
            raise PermissionDeniedError("Sensor is deactivated")
        return sensor

    async def get_owned_sensor(self, sensor_id: str, farmer_id: str) -> Document:
        sensor = await self.store.get("sensor_units", sensor_id)
        if sensor is None:
            raise NotFoundError("Sensor not found")
        await self.farms.get_owned_farm(sensor.data.get("farm_id"), farmer_id)
        return sensor

    # =========================================================================
    # REGISTRATION / MANAGEMENT
    # =========================================================================

    async def register(self, farmer_id: str, request: RegisterSensorRequest) -> dict[str, Any]:
        await self.farms.get_owned_farm(request.farm_id, farmer_id)
        zone = await self.farms.get_owned_zone(request.zone_id, farmer_id)
        if zone.data.get("farm_id") != request.farm_id:
            raise ValidationError("Zone does not belong to this farm")

        duplicates = await self.store.query("sensor_units", [
            ("farm_id", "==", request.farm_id),
            ("device_id", "==", request.device_id),
            ("is_active", "==", True),
        ], limit=1)
        if duplicates:
            raise ConflictError(f"Device {request.device_id} is already registered on this farm")

        sensor_id = new_document_id()
        now = utcnow()
        sensor = {
            "device_id": request.device_id,
            "sensor_type": request.sensor_type.value,
            "farm_id": request.farm_id,
            "zone_id": request.zone_id,
            "farmer_id": farmer_id,
            "location_description": request.location_description,
            "coordinates": request.coordinates.model_dump(),
            "battery_level": 100,
            "is_operational": True,
            "is_active": True,
            "boundary_threshold": request.boundary_threshold or self.default_threshold,
            "last_reading": None,
            "last_reading_time": None,
            "total_readings_today": 0,
            "alerts_triggered_today": 0,
            "total_alerts": 0,
            "firmware_version": request.firmware_version,
            "created_at": now,
            "last_maintenance": now,
        }

        batch = self.store.batch()
        batch.create("sensor_units", sensor_id, sensor)
        self.counters.stage(batch, EntityType.FARM, request.farm_id, "sensors_count", 1)
        self.counters.stage(batch, EntityType.ZONE, request.zone_id, "sensors_count", 1)
        await self.counters.commit(batch)

        await self.live_status.initialize(sensor_id)
        logger.info(f"[sensors] {request.sensor_type.value} sensor {sensor_id} registered on zone {request.zone_id}")
        return {"sensor_id": sensor_id, **sensor}

    async def list_sensors(
        self,
        farmer_id: str,
        farm_id: Optional[str] = None,
        zone_id: Optional[str] = None,
        status: SensorStatusFilter = SensorStatusFilter.ALL,
        include_inactive: bool = False,
    ) -> list[dict[str, Any]]:
        if farm_id:
            await self.farms.get_owned_farm(farm_id, farmer_id)
            filters = [("farm_id", "==", farm_id)]
        else:
            filters = [("farmer_id", "==", farmer_id)]
        if zone_id:
            filters.append(("zone_id", "==", zone_id))

        current = now_ms()
        sensors = []
        for doc in await self.store.query("sensor_units", filters):
            if not include_inactive and not doc.data.get("is_active", True):
                continue

            live = await self.live_status.get_status(doc.id)
            if live is None:
                live_view = dict(OFFLINE_PLACEHOLDER)
                online = False
            else:
                stale = is_stale(live.last_timestamp, current, self.live_status.stale_after_ms)
                live_view = {**live.model_dump(), "is_stale": stale}
                online = live.is_online and not stale

            if status == SensorStatusFilter.ONLINE and not online:
                continue
            if status == SensorStatusFilter.OFFLINE and online:
                continue

            sensors.append({**doc.to_dict("sensor_id"), "live_status": live_view})
        return sensors

    async def get_sensor(self, sensor_id: str, farmer_id: str) -> dict[str, Any]:
        sensor = await self.get_owned_sensor(sensor_id, farmer_id)
        live = await self.live_status.get_status(sensor_id)
        live_view = await self.live_status.describe(sensor_id) if live else dict(OFFLINE_PLACEHOLDER)
        return {**sensor.to_dict("sensor_id"), "live_status": live_view}

    async def update(self, sensor_id: str, farmer_id: str, request: UpdateSensorRequest) -> dict[str, Any]:
        sensor = await self.get_owned_sensor(sensor_id, farmer_id)
        changes = request.model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No fields to update")
        changes["updated_at"] = utcnow()

        await self.store.update("sensor_units", sensor_id, changes)
        return {"sensor_id": sensor_id, **sensor.data, **changes}

    async def deactivate(self, sensor_id: str, farmer_id: str) -> dict[str, Any]:
        """Soft delete. Deactivating twice changes nothing the second time."""
        sensor = await self.get_owned_sensor(sensor_id, farmer_id)
        if not sensor.data.get("is_active", True):
            return sensor.to_dict("sensor_id")

        changes = {"is_active": False, "is_operational": False, "deactivated_at": utcnow()}
        batch = self.store.batch()
        batch.update("sensor_units", sensor_id, changes)
        self.counters.stage(batch, EntityType.FARM, sensor.data["farm_id"], "sensors_count", -1)
        self.counters.stage(batch, EntityType.ZONE, sensor.data["zone_id"], "sensors_count", -1)
        await self.counters.commit(batch)

        await self.live_status.mark_offline(sensor_id)
        logger.info(f"[sensors] sensor {sensor_id} deactivated")
        return {"sensor_id": sensor_id, **sensor.data, **changes}

    async def update_battery(
        self, sensor_id: str, battery_level: float, device: DeviceIdentity
    ) -> dict[str, Any]:
        sensor = await self.get_active_sensor(sensor_id)
        device.check_sensor(sensor.data)

        await self.store.update("sensor_units", sensor_id, {
            "battery_level": battery_level,
            "last_battery_update": utcnow(),
        })
        await self.live_status.set_battery(sensor_id, battery_level)

        alert_id = None
        low = battery_level < self.low_battery_threshold
        if low:
            alert_id = await self.recorder.record_low_battery_safely(
                sensor.to_dict("id"), battery_level
            )
        return {"sensor_id": sensor_id, "battery_level": battery_level, "low_battery": low, "alert_id": alert_id}
