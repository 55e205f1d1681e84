"""
Alert Recorder
==============

Turns a breach decision into durable records.

WHAT IT DOES:
------------
1. record_breach(): one Alert + one Notification for a breaching reading,
   committed in the same batch as the counters they affect:
       farms.active_alerts            +1
       sensor_units.alerts_triggered_today +1
       sensor_units.total_alerts      +1
2. Pushes the notification to the owning farmer's alert topic (best
   effort, the row keeps the delivery status).
3. record_low_battery(): same, for a medium-severity maintenance alert.
4. resolve() / delete(): flip or remove an alert and release its
   active_alerts slot, conditional on the alert being unchanged since read.

RETRIES AND DUPLICATES:
----------------------
The alert id is derived from the reading id, so replaying the same reading
finds the existing alert and returns it without touching any counter.
Different readings always produce different alerts: there is no
deduplication window unless ALERT_COOLDOWN_SECONDS is set, in which case a
breach is skipped while the sensor has an unresolved alert of the same type
detected inside the window.

FIRE-AND-FORGET:
---------------
Reading ingestion calls the *_safely() variants, which log and swallow every
failure so that a broken alert path never fails a sensor's request.

Author: ZoneAlert Team
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from zonealert.errors import ConflictError, NotFoundError, ValidationError, ZoneAlertError
from zonealert.models import AlertType, DeliveryStatus, ReadingStatus, Severity
from zonealert.services.counters import CounterMaintainer, EntityType
from zonealert.services.notifications import farmer_topic
from zonealert.services.threshold import CRITICAL_DISTANCE, breach_severity
from zonealert.storage.base import DocumentStore, Messenger

logger = logging.getLogger(__name__)

# Reads before giving up on an alert that keeps changing under resolve/delete
MAX_WRITE_ATTEMPTS = 3


def ms_to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def breach_alert_id(reading_id: str) -> str:
    """Alert id for a reading, stable across retries."""
    return f"breach_{reading_id}"


class AlertRecorder:
    """Creates, resolves and deletes alerts together with their counters."""

    def __init__(
        self,
        store: DocumentStore,
        messenger: Messenger,
        counters: CounterMaintainer,
        topic: str = "livestock_alerts",
        cooldown_seconds: int = 0,
        critical_distance: float = CRITICAL_DISTANCE,
    ):
        self.store = store
        self.messenger = messenger
        self.counters = counters
        self.topic = topic
        self.cooldown_seconds = cooldown_seconds
        self.critical_distance = critical_distance

    # =========================================================================
    # RECORDING
    # =========================================================================

    async def record_breach(self, sensor: dict[str, Any], reading: dict[str, Any]) -> str:
        """
        Record a boundary breach for a reading.

        Args:
            sensor: Sensor document as a dict, including its "id"
            reading: Stored reading, including its "id"

        Returns:
            The alert id (the existing one if this reading was already recorded
            or a cooldown is active)

        Raises:
            ValidationError: if the reading is not a breach
        """
        if reading.get("status") != ReadingStatus.ALERT.value:
            raise ValidationError("Only breaching readings create alerts")

        alert_id = breach_alert_id(reading["id"])
        if await self.store.get("alerts", alert_id) is not None:
            logger.info(f"[alerts] reading {reading['id']} already recorded as {alert_id}")
            return alert_id

        detected_at = ms_to_datetime(reading["timestamp"])
        suppressed_by = await self._active_in_cooldown(
            sensor["id"], AlertType.BOUNDARY_BREACH, detected_at
        )
        if suppressed_by:
            logger.debug(f"[alerts] cooldown active for sensor {sensor['id']}, skipping")
            return suppressed_by

        distance = reading["distance_measured"]
        severity = reading.get("severity") or breach_severity(distance, self.critical_distance).value
        location = sensor.get("location_description") or "unknown location"

        alert = {
            "sensor_id": sensor["id"],
            "zone_id": sensor.get("zone_id"),
            "farm_id": sensor.get("farm_id"),
            "farmer_id": sensor.get("farmer_id"),
            "livestock_id": reading.get("livestock_id"),
            "reading_id": reading["id"],
            "alert_type": AlertType.BOUNDARY_BREACH.value,
            "severity": severity,
            "trigger_distance": distance,
            "threshold": reading.get("threshold"),
            "description": f"Livestock detected {distance}cm from boundary at {location}",
            "is_resolved": False,
            "resolved_at": None,
            "detected_at": detected_at,
        }
        return await self._commit_alert(alert_id, alert, sensor, breach=True)

    async def record_low_battery(self, sensor: dict[str, Any], battery_level: float) -> str:
        """Record a medium-severity low battery alert for a sensor."""
        detected_at = datetime.now(timezone.utc)
        suppressed_by = await self._active_in_cooldown(
            sensor["id"], AlertType.LOW_BATTERY, detected_at
        )
        if suppressed_by:
            return suppressed_by

        alert = {
            "sensor_id": sensor["id"],
            "zone_id": sensor.get("zone_id"),
            "farm_id": sensor.get("farm_id"),
            "farmer_id": sensor.get("farmer_id"),
            "livestock_id": None,
            "reading_id": None,
            "alert_type": AlertType.LOW_BATTERY.value,
            "severity": Severity.MEDIUM.value,
            "trigger_distance": None,
            "battery_level": battery_level,
            "description": f"Sensor battery low: {battery_level}%",
            "is_resolved": False,
            "resolved_at": None,
            "detected_at": detected_at,
        }
        return await self._commit_alert(f"battery_{uuid.uuid4().hex[:16]}", alert, sensor, breach=False)

    async def record_breach_safely(self, sensor: dict[str, Any], reading: dict[str, Any]) -> Optional[str]:
        """record_breach() that logs and swallows every failure."""
        try:
            return await self.record_breach(sensor, reading)
        except Exception:
            logger.exception(f"[alerts] failed to record breach for sensor {sensor.get('id')}")
            return None

    async def record_low_battery_safely(self, sensor: dict[str, Any], battery_level: float) -> Optional[str]:
        """record_low_battery() that logs and swallows every failure."""
        try:
            return await self.record_low_battery(sensor, battery_level)
        except Exception:
            logger.exception(f"[alerts] failed to record low battery for sensor {sensor.get('id')}")
            return None

    async def _active_in_cooldown(
        self, sensor_id: str, alert_type: AlertType, detected_at: datetime
    ) -> Optional[str]:
        """Id of an open alert inside the cooldown window, if the window is enabled."""
        if self.cooldown_seconds <= 0:
            return None
        cutoff = detected_at - timedelta(seconds=self.cooldown_seconds)
        recent = await self.store.query("alerts", [
            ("sensor_id", "==", sensor_id),
            ("alert_type", "==", alert_type.value),
            ("is_resolved", "==", False),
            ("detected_at", ">=", cutoff),
        ], limit=1)
        return recent[0].id if recent else None

    async def _commit_alert(self, alert_id: str, alert: dict, sensor: dict, breach: bool) -> str:
        title = "Boundary breach" if breach else "Low battery"
        notification = {
            "alert_id": alert_id,
            "farmer_id": alert["farmer_id"],
            "farm_id": alert["farm_id"],
            "title": title,
            "message": alert["description"],
            "severity": alert["severity"],
            "is_read": False,
            "delivery_status": DeliveryStatus.PENDING.value,
            "sent_at": datetime.now(timezone.utc),
        }

        batch = self.store.batch()
        batch.create("alerts", alert_id, alert)
        batch.create("notifications", alert_id, notification)
        if alert["farm_id"]:
            self.counters.stage(batch, EntityType.FARM, alert["farm_id"], "active_alerts", 1)
        if breach:
            self.counters.stage(batch, EntityType.SENSOR, sensor["id"], "alerts_triggered_today", 1)
            self.counters.stage(batch, EntityType.SENSOR, sensor["id"], "total_alerts", 1)

        try:
            await self.counters.commit(batch)
        except ConflictError:
            # A concurrent retry of the same reading won the race
            logger.info(f"[alerts] {alert_id} was recorded concurrently")
            return alert_id

        logger.info(f"[alerts] {alert['alert_type']} {alert_id} ({alert['severity']}) for sensor {sensor['id']}")
        await self._push(alert_id, title, alert)
        return alert_id

    async def _push(self, notification_id: str, title: str, alert: dict) -> None:
        """Best-effort push to the owning farmer's topic; failures only mark the notification row."""
        if not alert["farmer_id"]:
            logger.warning(f"[alerts] {notification_id} has no owning farmer, not pushed")
            return

        data = {
            "alert_id": notification_id,
            "alert_type": alert["alert_type"],
            "severity": alert["severity"],
            "sensor_id": alert["sensor_id"],
            "farm_id": alert["farm_id"] or "",
        }
        try:
            message_id = await self.messenger.send(
                title, alert["description"], data=data, topic=farmer_topic(self.topic, alert["farmer_id"])
            )
            await self.store.update("notifications", notification_id, {
                "delivery_status": DeliveryStatus.SENT.value,
                "message_id": message_id,
            })
        except ZoneAlertError as e:
            logger.warning(f"[alerts] push for {notification_id} failed: {e.message}")
            try:
                await self.store.update("notifications", notification_id, {
                    "delivery_status": DeliveryStatus.FAILED.value,
                    "error": e.message,
                })
            except ZoneAlertError as update_error:
                logger.warning(f"[alerts] could not mark {notification_id} failed: {update_error.message}")

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    async def _stage_release(self, batch, alert: dict) -> None:
        """Decrement counters held by an open alert, skipping parents that are gone."""
        farm_id = alert.get("farm_id")
        if farm_id and await self.store.get("farms", farm_id) is not None:
            self.counters.stage(batch, EntityType.FARM, farm_id, "active_alerts", -1)

    async def resolve(self, alert_id: str, resolved_by: Optional[str] = None) -> dict[str, Any]:
        """
        Mark an alert resolved. Resolving a resolved alert changes nothing.

        The update is conditional on the alert not having been written since
        it was read, so concurrent resolves and deletes release the
        active_alerts slot once.

        Raises:
            NotFoundError: if the alert does not exist
            ConflictError: if the alert kept changing for MAX_WRITE_ATTEMPTS reads
        """
        for _ in range(MAX_WRITE_ATTEMPTS):
            doc = await self.store.get("alerts", alert_id)
            if doc is None:
                raise NotFoundError("Alert not found")
            if doc.data.get("is_resolved"):
                return doc.to_dict("alert_id")

            changes = {
                "is_resolved": True,
                "resolved_at": datetime.now(timezone.utc),
                "resolved_by": resolved_by,
            }
            batch = self.store.batch()
            batch.update("alerts", alert_id, changes, last_update_time=doc.update_time)
            await self._stage_release(batch, doc.data)
            try:
                await self.counters.commit(batch)
            except ConflictError:
                logger.info(f"[alerts] {alert_id} changed while resolving, re-reading")
                continue

            logger.info(f"[alerts] {alert_id} resolved")
            return {"alert_id": alert_id, **doc.data, **changes}

        raise ConflictError("Alert is being modified, try again")

    async def delete(self, alert_id: str) -> None:
        """
        Delete an alert (manual correction) and its notification.

        Conditional on the alert not having been written since it was read,
        like resolve().

        Raises:
            NotFoundError: if the alert does not exist
            ConflictError: if the alert kept changing for MAX_WRITE_ATTEMPTS reads
        """
        for _ in range(MAX_WRITE_ATTEMPTS):
            doc = await self.store.get("alerts", alert_id)
            if doc is None:
                raise NotFoundError("Alert not found")

            batch = self.store.batch()
            batch.delete("alerts", alert_id, last_update_time=doc.update_time)
            batch.delete("notifications", alert_id)
            if not doc.data.get("is_resolved"):
                await self._stage_release(batch, doc.data)

            sensor_id = doc.data.get("sensor_id")
            if (doc.data.get("alert_type") == AlertType.BOUNDARY_BREACH.value and sensor_id
                    and await self.store.get("sensor_units", sensor_id) is not None):
                self.counters.stage(batch, EntityType.SENSOR, sensor_id, "total_alerts", -1)

            try:
                await self.counters.commit(batch)
            except ConflictError:
                logger.info(f"[alerts] {alert_id} changed while deleting, re-reading")
                continue

            logger.info(f"[alerts] {alert_id} deleted")
            return

        raise ConflictError("Alert is being modified, try again")
