"""
Denormalized Counter Maintainer
===============================

Keeps the cached child counts on parent documents equal to the real number
of children.

WHAT IT DOES:
------------
1. adjust()  - one atomic increment on one parent (outside any entity write)
2. stage()   - queue an increment inside a WriteBatch, so the entity write
               and every counter it affects commit together or not at all
3. reparent()- move one unit of a counter from an old parent to a new one
4. reconcile() - repair job: recount children and overwrite drifted values
5. reset_daily_counters() - zero the per-sensor "today" counters

COUNTERS:
--------
    farmers.farms_count
    farms.zones_count / livestock_count / sensors_count / active_alerts
    boundary_zones.current_livestock_count / sensors_count
    sensor_units.total_readings_today / alerts_triggered_today / total_alerts

Counter failures are never swallowed: commit() re-raises whatever the store
raised (NotFoundError for a missing parent, DependencyError otherwise).

Author: ZoneAlert Team
"""

import logging
from collections import Counter
from enum import Enum
from typing import Any, Optional

from zonealert.errors import DependencyError, ValidationError, ZoneAlertError
from zonealert.models import AlertType
from zonealert.storage.base import DocumentStore, WriteBatch

logger = logging.getLogger(__name__)

# Firestore caps a batch at 500 writes
BATCH_CHUNK_SIZE = 400


class EntityType(str, Enum):
    """Parents that carry denormalized counters."""
    FARMER = "farmer"
    FARM = "farm"
    ZONE = "zone"
    SENSOR = "sensor"


COLLECTIONS = {
    EntityType.FARMER: "farmers",
    EntityType.FARM: "farms",
    EntityType.ZONE: "boundary_zones",
    EntityType.SENSOR: "sensor_units",
}

COUNTER_FIELDS = {
    EntityType.FARMER: {"farms_count"},
    EntityType.FARM: {"zones_count", "livestock_count", "sensors_count", "active_alerts"},
    EntityType.ZONE: {"current_livestock_count", "sensors_count"},
    EntityType.SENSOR: {"total_readings_today", "alerts_triggered_today", "total_alerts"},
}


class CounterMaintainer:
    """Single place where aggregate counters are adjusted."""

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _check(entity_type: EntityType, field_name: str) -> str:
        if field_name not in COUNTER_FIELDS[entity_type]:
            raise ValidationError(f"{field_name} is not a counter of {entity_type.value}")
        return COLLECTIONS[entity_type]

    # =========================================================================
    # SINGLE ADJUSTMENTS
    # =========================================================================

    async def adjust(self, entity_type: EntityType, entity_id: str, field_name: str, delta: int) -> None:
        """Atomically add delta to one counter."""
        collection = self._check(entity_type, field_name)
        if delta == 0:
            return
        try:
            await self.store.increment(collection, entity_id, field_name, delta)
        except ZoneAlertError as e:
            logger.error(f"[counters] {collection}/{entity_id}.{field_name} {delta:+d} failed: {e}")
            raise

    def stage(
        self,
        batch: WriteBatch,
        entity_type: EntityType,
        entity_id: str,
        field_name: str,
        delta: int,
    ) -> WriteBatch:
        """Queue an adjustment inside a batch."""
        collection = self._check(entity_type, field_name)
        if delta != 0:
            batch.increment(collection, entity_id, field_name, delta)
        return batch

    def reparent(
        self,
        batch: WriteBatch,
        entity_type: EntityType,
        field_name: str,
        old_id: Optional[str],
        new_id: Optional[str],
        amount: int = 1,
    ) -> WriteBatch:
        """Move `amount` from old parent's counter to new parent's counter."""
        if old_id == new_id:
            return batch
        if old_id:
            self.stage(batch, entity_type, old_id, field_name, -amount)
        if new_id:
            self.stage(batch, entity_type, new_id, field_name, amount)
        return batch

    async def commit(self, batch: WriteBatch) -> None:
        """Commit a batch of entity writes and counter adjustments."""
        try:
            await batch.commit()
        except ZoneAlertError as e:
            logger.error(f"[counters] batch of {len(batch)} writes failed: {e.message}")
            raise
        except Exception as e:
            logger.error(f"[counters] batch of {len(batch)} writes failed: {e}")
            raise DependencyError(f"Counter update failed: {e}") from e

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def _apply_in_chunks(self, updates: list[tuple[str, str, dict]]) -> None:
        for start in range(0, len(updates), BATCH_CHUNK_SIZE):
            batch = self.store.batch()
            for collection, doc_id, data in updates[start:start + BATCH_CHUNK_SIZE]:
                batch.update(collection, doc_id, data)
            await self.commit(batch)

    async def reconcile(self) -> dict[str, Any]:
        """
        Recount every aggregate from its children and fix drifted values.

        Returns:
            {"checked": <parents examined>, "corrections": [{collection, id, field, was, now}]}
        """
        farms = await self.store.query("farms")
        zones = await self.store.query("boundary_zones")
        farmers = await self.store.query("farmers")
        sensors = await self.store.query("sensor_units")
        livestock = await self.store.query("livestock")
        open_alerts = await self.store.query("alerts", [("is_resolved", "==", False)])
        breaches = await self.store.query(
            "alerts", [("alert_type", "==", AlertType.BOUNDARY_BREACH.value)]
        )

        active_sensors = [s for s in sensors if s.data.get("is_active", True)]

        expected: dict[str, dict[str, Counter]] = {
            "farms": {
                "livestock_count": Counter(a.data.get("farm_id") for a in livestock),
                "zones_count": Counter(z.data.get("farm_id") for z in zones),
                "sensors_count": Counter(s.data.get("farm_id") for s in active_sensors),
                "active_alerts": Counter(a.data.get("farm_id") for a in open_alerts),
            },
            "boundary_zones": {
                "current_livestock_count": Counter(a.data.get("zone_id") for a in livestock),
                "sensors_count": Counter(s.data.get("zone_id") for s in active_sensors),
            },
            "farmers": {
                "farms_count": Counter(f.data.get("farmer_id") for f in farms),
            },
            "sensor_units": {
                "total_alerts": Counter(a.data.get("sensor_id") for a in breaches),
            },
        }
        parents = {
            "farms": farms,
            "boundary_zones": zones,
            "farmers": farmers,
            "sensor_units": sensors,
        }

        corrections = []
        updates = []
        for collection, fields in expected.items():
            for doc in parents[collection]:
                changed = {}
                for field_name, counts in fields.items():
                    actual = doc.data.get(field_name, 0) or 0
                    true_count = counts.get(doc.id, 0)
                    if actual != true_count:
                        changed[field_name] = true_count
                        corrections.append({
                            "collection": collection,
                            "id": doc.id,
                            "field": field_name,
                            "was": actual,
                            "now": true_count,
                        })
                if changed:
                    updates.append((collection, doc.id, changed))

        await self._apply_in_chunks(updates)

        checked = sum(len(docs) for docs in parents.values())
        if corrections:
            logger.warning(f"[counters] reconcile fixed {len(corrections)} drifted counters")
        else:
            logger.info(f"[counters] reconcile checked {checked} documents, no drift")
        return {"checked": checked, "corrections": corrections}

    async def reset_daily_counters(self) -> int:
        """Zero today's reading/alert counters on every sensor. Returns sensors reset."""
        sensors = await self.store.query("sensor_units")
        updates = [
            ("sensor_units", s.id, {"total_readings_today": 0, "alerts_triggered_today": 0})
            for s in sensors
            if s.data.get("total_readings_today") or s.data.get("alerts_triggered_today")
        ]
        await self._apply_in_chunks(updates)
        logger.info(f"[counters] daily counters reset on {len(updates)} sensors")
        return len(updates)
