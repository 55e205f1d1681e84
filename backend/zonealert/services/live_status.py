"""
Live Status Tracker
===================

Fast-read "last known state" per sensor, kept in the realtime tree at
sensor_status/{sensor_id} and separate from the reading history.

- Every reading fully overwrites the record (last write wins, no history).
- Nothing sweeps offline sensors: staleness is computed when the record is
  read. A sensor is stale when now - last_timestamp > 300000 ms (strict,
  so exactly 5 minutes old is still fresh).
"""

import logging
import time
from typing import Any, Optional

from zonealert.errors import NotFoundError
from zonealert.models import LiveStatus
from zonealert.storage.base import RealtimeStore

logger = logging.getLogger(__name__)

STALE_AFTER_MS = 300_000


def now_ms() -> int:
    return int(time.time() * 1000)


def status_path(sensor_id: str) -> str:
    return f"sensor_status/{sensor_id}"


def is_stale(last_timestamp: int, now: int, stale_after_ms: int = STALE_AFTER_MS) -> bool:
    """True iff the record is older than the window."""
    return now - last_timestamp > stale_after_ms


class LiveStatusTracker:
    """Reads and writes sensor_status/{id}."""

    def __init__(self, realtime: RealtimeStore, stale_after_ms: int = STALE_AFTER_MS):
        self.realtime = realtime
        self.stale_after_ms = stale_after_ms

    def status_record(self, reading: dict[str, Any], battery_level: Optional[float] = None) -> dict:
        """The record written for a reading (also used for multi-path batch writes)."""
        record = {
            "last_reading": reading["distance_measured"],
            "last_timestamp": reading["timestamp"],
            "status": reading["status"],
            "is_online": True,
        }
        if battery_level is not None:
            record["battery_level"] = battery_level
        return record

    async def update_status(self, sensor_id: str, reading: dict[str, Any]) -> None:
        """Overwrite the live record with this reading, keeping the battery level."""
        previous = await self.realtime.get(status_path(sensor_id)) or {}
        record = self.status_record(reading, previous.get("battery_level"))
        await self.realtime.set(status_path(sensor_id), record)

    async def initialize(self, sensor_id: str, battery_level: float = 100) -> None:
        """Inactive placeholder written when a sensor is registered."""
        await self.realtime.set(status_path(sensor_id), {
            "last_reading": 0,
            "last_timestamp": now_ms(),
            "status": "inactive",
            "is_online": False,
            "battery_level": battery_level,
        })

    async def set_battery(self, sensor_id: str, level: float) -> None:
        await self.realtime.set(f"{status_path(sensor_id)}/battery_level", level)

    async def mark_offline(self, sensor_id: str) -> None:
        """Used when a sensor is deactivated."""
        await self.realtime.update(status_path(sensor_id), {"is_online": False, "status": "inactive"})

    async def get_status(self, sensor_id: str) -> Optional[LiveStatus]:
        raw = await self.realtime.get(status_path(sensor_id))
        if not raw or "last_timestamp" not in raw:
            return None
        return LiveStatus(**raw)

    async def describe(self, sensor_id: str, now: Optional[int] = None) -> dict[str, Any]:
        """
        Live status plus derived freshness.

        Raises:
            NotFoundError: if the sensor never reported
        """
        status = await self.get_status(sensor_id)
        if status is None:
            raise NotFoundError("No live data available for this sensor")

        current = now if now is not None else now_ms()
        age_ms = max(0, current - status.last_timestamp)
        return {
            "sensor_id": sensor_id,
            **status.model_dump(),
            "is_stale": is_stale(status.last_timestamp, current, self.stale_after_ms),
            "age_seconds": age_ms // 1000,
        }
