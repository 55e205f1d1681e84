"""
Alert Service
=============

Farmer-facing reads and actions on alerts. Recording lives in
AlertRecorder; this service scopes everything to the caller's farms.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from zonealert.errors import NotFoundError, PermissionDeniedError, ValidationError
from zonealert.models import AlertType
from zonealert.services.alert_recorder import AlertRecorder
from zonealert.services.analytics import IN_FILTER_LIMIT
from zonealert.services.farms import FarmService
from zonealert.storage.base import Document, DocumentStore

logger = logging.getLogger(__name__)

MAX_ALERTS_LIMIT = 500


class AlertService:
    def __init__(self, store: DocumentStore, recorder: AlertRecorder, farms: FarmService):
        self.store = store
        self.recorder = recorder
        self.farms = farms

    async def _get_owned(self, alert_id: str, farmer_id: str) -> Document:
        alert = await self.store.get("alerts", alert_id)
        if alert is None:
            raise NotFoundError("Alert not found")
        if alert.data.get("farmer_id") != farmer_id:
            owned = await self.farms.farm_ids(farmer_id)
            if alert.data.get("farm_id") not in owned:
                raise PermissionDeniedError("You do not have access to this alert")
        return alert

    async def list_alerts(
        self,
        farmer_id: str,
        sensor_id: Optional[str] = None,
        farm_id: Optional[str] = None,
        alert_type: Optional[AlertType] = None,
        is_resolved: Optional[bool] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Caller's alerts, newest first."""
        if not 1 <= limit <= MAX_ALERTS_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_ALERTS_LIMIT}")
        if start and end and start > end:
            raise ValidationError("start_date must be before end_date")

        if farm_id:
            await self.farms.get_owned_farm(farm_id, farmer_id)
            farm_ids = [farm_id]
        else:
            farm_ids = await self.farms.farm_ids(farmer_id)
        if not farm_ids:
            return []

        extra = []
        if sensor_id:
            extra.append(("sensor_id", "==", sensor_id))
        if alert_type:
            extra.append(("alert_type", "==", alert_type.value))
        if is_resolved is not None:
            extra.append(("is_resolved", "==", is_resolved))
        if start:
            extra.append(("detected_at", ">=", start))
        if end:
            extra.append(("detected_at", "<=", end))

        alerts: list[Document] = []
        for i in range(0, len(farm_ids), IN_FILTER_LIMIT):
            chunk = farm_ids[i:i + IN_FILTER_LIMIT]
            alerts.extend(await self.store.query("alerts", [("farm_id", "in", chunk), *extra]))

        alerts.sort(key=lambda d: d.data.get("detected_at") or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return [a.to_dict("alert_id") for a in alerts[:limit]]

    async def recent(self, farmer_id: str, hours: int = 24, limit: int = 100) -> list[dict[str, Any]]:
        if hours < 1:
            raise ValidationError("hours must be at least 1")
        since = datetime.now(timezone.utc) - timedelta(hours=hours)
        return await self.list_alerts(farmer_id, start=since, limit=limit)

    async def by_device(self, sensor_id: str, farmer_id: str, limit: int = 100) -> list[dict[str, Any]]:
        sensor = await self.store.get("sensor_units", sensor_id)
        if sensor is None:
            raise NotFoundError("Sensor not found")
        await self.farms.get_owned_farm(sensor.data.get("farm_id"), farmer_id)
        return await self.list_alerts(farmer_id, sensor_id=sensor_id, limit=limit)

    async def get(self, alert_id: str, farmer_id: str) -> dict[str, Any]:
        alert = await self._get_owned(alert_id, farmer_id)
        return alert.to_dict("alert_id")

    async def resolve(self, alert_id: str, farmer_id: str) -> dict[str, Any]:
        await self._get_owned(alert_id, farmer_id)
        return await self.recorder.resolve(alert_id, resolved_by=farmer_id)

    async def delete(self, alert_id: str, farmer_id: str) -> None:
        await self._get_owned(alert_id, farmer_id)
        await self.recorder.delete(alert_id)
