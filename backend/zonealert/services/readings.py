"""
Reading Service
===============

The ingestion path for distance readings from boundary sensors.

HOW A READING FLOWS:
-------------------
    validate (sensor exists, active, key allowed, animal on same farm)
        -> evaluate against the sensor's own threshold
        -> append to sensor_readings/{YYYY-MM-DD}/{sensor_id}   (UTC date)
        -> overwrite sensor_status/{sensor_id}                 (live status)
        -> sensor running totals (+1 reading today)            (surfaced)
        -> animal boundary status, if the reading names one
        -> breach alert                                        (swallowed)

Everything that can reject the request runs before the first write.

Author: ZoneAlert Team
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from zonealert.errors import ValidationError
from zonealert.models import BatchReadingRequest, DeviceAlertRequest, ReadingStatus, SensorReadingRequest
from zonealert.services.alert_recorder import AlertRecorder, ms_to_datetime
from zonealert.services.counters import CounterMaintainer, EntityType
from zonealert.services.device_keys import DeviceIdentity
from zonealert.services.live_status import LiveStatusTracker, now_ms
from zonealert.services.livestock import LivestockService
from zonealert.services.sensors import SensorService
from zonealert.services.threshold import (
    CRITICAL_DISTANCE,
    DEFAULT_THRESHOLD,
    breach_severity,
    evaluate,
    sensor_threshold,
)
from zonealert.storage.base import DocumentStore, RealtimeStore, new_document_id

logger = logging.getLogger(__name__)

MAX_READINGS_LIMIT = 1000
MAX_RANGE_DAYS = 31


def date_key(timestamp_ms: int) -> str:
    """UTC calendar date used to partition readings."""
    return ms_to_datetime(timestamp_ms).strftime("%Y-%m-%d")


def readings_path(day: str, sensor_id: str) -> str:
    return f"sensor_readings/{day}/{sensor_id}"


class ReadingService:
    def __init__(
        self,
        store: DocumentStore,
        realtime: RealtimeStore,
        live_status: LiveStatusTracker,
        recorder: AlertRecorder,
        counters: CounterMaintainer,
        sensors: SensorService,
        livestock: LivestockService,
        default_threshold: float = DEFAULT_THRESHOLD,
        critical_distance: float = CRITICAL_DISTANCE,
    ):
        self.store = store
        self.realtime = realtime
        self.live_status = live_status
        self.recorder = recorder
        self.counters = counters
        self.sensors = sensors
        self.livestock = livestock
        self.default_threshold = default_threshold
        self.critical_distance = critical_distance

    # =========================================================================
    # SINGLE READING
    # =========================================================================

    async def submit_reading(
        self,
        request: SensorReadingRequest,
        device: DeviceIdentity,
        timestamp: Optional[int] = None,
    ) -> dict[str, Any]:
        sensor = await self.sensors.get_active_sensor(request.sensor_id)
        device.check_sensor(sensor.data)
        if request.livestock_id:
            await self.livestock.check_sighting(request.livestock_id, sensor.data)

        threshold = sensor_threshold(sensor.data, self.default_threshold)
        evaluation = evaluate(request.distance_measured, threshold, self.critical_distance)
        timestamp = timestamp if timestamp is not None else now_ms()

        reading = {
            "sensor_id": sensor.id,
            "distance_measured": request.distance_measured,
            "sensor_type": request.sensor_type.value,
            "status": evaluation.status.value,
            "severity": evaluation.severity.value if evaluation.severity else None,
            "threshold": threshold,
            "timestamp": timestamp,
            "zone_id": sensor.data.get("zone_id"),
            "farm_id": sensor.data.get("farm_id"),
        }
        if request.livestock_id:
            reading["livestock_id"] = request.livestock_id

        reading_id = await self.realtime.push(readings_path(date_key(timestamp), sensor.id), reading)
        await self.live_status.update_status(sensor.id, reading)

        batch = self.store.batch()
        batch.update("sensor_units", sensor.id, {
            "last_reading": request.distance_measured,
            "last_reading_time": ms_to_datetime(timestamp),
            "is_operational": True,
        })
        self.counters.stage(batch, EntityType.SENSOR, sensor.id, "total_readings_today", 1)
        await self.counters.commit(batch)

        if request.livestock_id:
            await self.livestock.record_sighting(request.livestock_id, reading, evaluation.is_breach)

        alert_id = None
        if evaluation.is_breach:
            alert_id = await self.recorder.record_breach_safely(
                sensor.to_dict("id"), {**reading, "id": reading_id}
            )

        logger.debug(f"[readings] {sensor.id}: {request.distance_measured} -> {evaluation.status.value}")
        return {
            "reading_id": reading_id,
            "status": evaluation.status.value,
            "severity": reading["severity"],
            "timestamp": timestamp,
            "distance_measured": request.distance_measured,
            "threshold": threshold,
            "alert_id": alert_id,
        }

    # =========================================================================
    # BATCH (offline sync)
    # =========================================================================

    async def submit_batch(self, request: BatchReadingRequest, device: DeviceIdentity) -> dict[str, Any]:
        """
        Store buffered readings in one multi-path write.

        Readings for unknown, deactivated or foreign sensors are rejected
        individually; the rest of the batch still goes through.
        """
        current = now_ms()
        sensors = {}
        for sensor_id in {item.sensor_id for item in request.readings}:
            doc = await self.store.get("sensor_units", sensor_id)
            if doc is None or not doc.data.get("is_active", True):
                continue
            if device.farmer_id is not None and doc.data.get("farmer_id") != device.farmer_id:
                continue
            sensors[sensor_id] = doc

        updates: dict[str, Any] = {}
        stored: list[dict[str, Any]] = []
        rejected = 0
        for item in request.readings:
            sensor = sensors.get(item.sensor_id)
            if sensor is None:
                rejected += 1
                continue

            timestamp = item.timestamp if item.timestamp is not None else current
            threshold = sensor_threshold(sensor.data, self.default_threshold)
            evaluation = evaluate(item.distance_measured, threshold, self.critical_distance)
            reading_id = f"{timestamp:013d}{new_document_id()[:8]}"
            reading = {
                "sensor_id": item.sensor_id,
                "distance_measured": item.distance_measured,
                "sensor_type": item.sensor_type.value,
                "status": evaluation.status.value,
                "severity": evaluation.severity.value if evaluation.severity else None,
                "threshold": threshold,
                "timestamp": timestamp,
                "zone_id": sensor.data.get("zone_id"),
                "farm_id": sensor.data.get("farm_id"),
            }
            updates[f"{readings_path(date_key(timestamp), item.sensor_id)}/{reading_id}"] = reading
            stored.append({**reading, "id": reading_id})

        if updates:
            await self.realtime.multi_update(updates)

        # Live status and running totals follow each sensor's newest reading
        newest: dict[str, dict] = {}
        counts: dict[str, int] = {}
        for reading in stored:
            sid = reading["sensor_id"]
            counts[sid] = counts.get(sid, 0) + 1
            if sid not in newest or reading["timestamp"] >= newest[sid]["timestamp"]:
                newest[sid] = reading

        for sid, reading in newest.items():
            live = await self.live_status.get_status(sid)
            if live is None or live.last_timestamp <= reading["timestamp"] or not live.is_online:
                await self.live_status.update_status(sid, reading)

        if newest:
            batch = self.store.batch()
            for sid, reading in newest.items():
                batch.update("sensor_units", sid, {
                    "last_reading": reading["distance_measured"],
                    "last_reading_time": ms_to_datetime(reading["timestamp"]),
                    "is_operational": True,
                })
                self.counters.stage(batch, EntityType.SENSOR, sid, "total_readings_today", counts[sid])
            await self.counters.commit(batch)

        breaches = 0
        for reading in stored:
            if reading["status"] == ReadingStatus.ALERT.value:
                breaches += 1
                await self.recorder.record_breach_safely(sensors[reading["sensor_id"]].to_dict("id"), reading)

        logger.info(f"[readings] batch: {len(stored)} stored, {rejected} rejected, {breaches} breaches")
        return {
            "received": len(request.readings),
            "accepted": len(stored),
            "rejected": rejected,
            "breaches": breaches,
        }

    # =========================================================================
    # HISTORY / LIVE
    # =========================================================================

    async def list_readings(
        self,
        sensor_id: str,
        farmer_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> dict[str, Any]:
        """Readings across date partitions, newest first."""
        await self.sensors.get_owned_sensor(sensor_id, farmer_id)
        if not 1 <= limit <= MAX_READINGS_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_READINGS_LIMIT}")

        end = end or datetime.now(timezone.utc)
        start = start or end.replace(hour=0, minute=0, second=0, microsecond=0)
        if start > end:
            raise ValidationError("start_date must be before end_date")
        start_utc, end_utc = start.astimezone(timezone.utc), end.astimezone(timezone.utc)
        if (end_utc.date() - start_utc.date()).days > MAX_RANGE_DAYS:
            raise ValidationError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")

        start_ms = int(start_utc.timestamp() * 1000)
        end_ms = int(end_utc.timestamp() * 1000)

        readings = []
        day = start_utc.date()
        while day <= end_utc.date():
            partition = await self.realtime.get(readings_path(day.isoformat(), sensor_id)) or {}
            for key, value in partition.items():
                if isinstance(value, dict) and start_ms <= value.get("timestamp", 0) <= end_ms:
                    readings.append({"id": key, **value})
            day += timedelta(days=1)

        readings.sort(key=lambda r: r["timestamp"], reverse=True)
        readings = readings[:limit]
        return {"sensor_id": sensor_id, "count": len(readings), "readings": readings}

    async def live(self, sensor_id: str, farmer_id: str) -> dict[str, Any]:
        await self.sensors.get_owned_sensor(sensor_id, farmer_id)
        return await self.live_status.describe(sensor_id)

    # =========================================================================
    # DEVICE-DECIDED ALERTS
    # =========================================================================

    async def report_device_alert(self, request: DeviceAlertRequest, device: DeviceIdentity) -> dict[str, Any]:
        """
        Alert evaluated on the device itself (POST /alerts).

        alert=True is stored as a breaching reading and recorded like any
        other breach; alert=False only refreshes the sensor's last seen time.
        """
        sensor = await self.sensors.get_active_sensor(request.sensor_id)
        device.check_sensor(sensor.data)
        timestamp = request.timestamp if request.timestamp is not None else now_ms()

        if not request.alert:
            await self.store.update("sensor_units", sensor.id, {
                "last_reading": request.distance,
                "last_reading_time": ms_to_datetime(timestamp),
                "is_operational": True,
            })
            return {"sensor_id": sensor.id, "alert": False, "alert_id": None}

        reading = {
            "sensor_id": sensor.id,
            "distance_measured": request.distance,
            "sensor_type": sensor.data.get("sensor_type"),
            "status": ReadingStatus.ALERT.value,
            "severity": breach_severity(request.distance, self.critical_distance).value,
            "threshold": sensor_threshold(sensor.data, self.default_threshold),
            "timestamp": timestamp,
            "zone_id": sensor.data.get("zone_id"),
            "farm_id": sensor.data.get("farm_id"),
            "source": "device",
        }
        reading_id = await self.realtime.push(readings_path(date_key(timestamp), sensor.id), reading)
        await self.live_status.update_status(sensor.id, reading)

        alert_id = await self.recorder.record_breach(sensor.to_dict("id"), {**reading, "id": reading_id})
        return {"sensor_id": sensor.id, "alert": True, "alert_id": alert_id, "severity": reading["severity"]}
