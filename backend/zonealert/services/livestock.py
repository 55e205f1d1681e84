"""
Livestock Service
=================

Animals, their zone membership and health records.

COUNTERS (all in the same batch as the animal write):
    create      -> boundary_zones.current_livestock_count +1, farms.livestock_count +1
    delete      -> both -1
    zone change -> old zone -1 / new zone +1, and the same for farms when the
                   new zone is on another farm; zone_name refreshed and a
                   movement record appended
"""

import logging
from collections import Counter
from typing import Any, Optional

from zonealert.errors import ConflictError, NotFoundError, ValidationError
from zonealert.models import (
    BoundaryStatus,
    CreateLivestockRequest,
    HealthStatus,
    MedicalRecordRequest,
    UpdateLivestockRequest,
    VaccinationRequest,
)
from zonealert.services.alert_recorder import ms_to_datetime
from zonealert.services.counters import CounterMaintainer, EntityType
from zonealert.services.farms import FarmService
from zonealert.storage.base import Document, DocumentStore, new_document_id, utcnow

logger = logging.getLogger(__name__)

RECENT_ALERTS_LIMIT = 10


class LivestockService:
    def __init__(self, store: DocumentStore, counters: CounterMaintainer, farms: FarmService):
        self.store = store
        self.counters = counters
        self.farms = farms

    async def get_owned(self, livestock_id: str, farmer_id: str) -> Document:
        animal = await self.store.get("livestock", livestock_id)
        if animal is None:
            raise NotFoundError("Livestock not found")
        await self.farms.get_owned_farm(animal.data.get("farm_id"), farmer_id)
        return animal

    async def _ensure_unique_tag(self, farm_id: str, tag: str, exclude_id: Optional[str] = None) -> None:
        existing = await self.store.query("livestock", [
            ("farm_id", "==", farm_id),
            ("identification_tag", "==", tag),
        ], limit=2)
        if any(doc.id != exclude_id for doc in existing):
            raise ConflictError("Identification tag already exists")

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, farmer_id: str, request: CreateLivestockRequest) -> dict[str, Any]:
        await self.farms.get_owned_farm(request.farm_id, farmer_id)
        zone = await self.farms.get_owned_zone(request.zone_id, farmer_id)
        if zone.data.get("farm_id") != request.farm_id:
            raise ValidationError("Zone does not belong to this farm")

        tag = request.identification_tag.strip()
        await self._ensure_unique_tag(request.farm_id, tag)

        livestock_id = new_document_id()
        now = utcnow()
        animal = {
            "farm_id": request.farm_id,
            "farmer_id": farmer_id,
            "zone_id": request.zone_id,
            "zone_name": zone.data.get("zone_name"),
            "animal_type": request.animal_type.value,
            "identification_tag": tag,
            "current_status": BoundaryStatus.INSIDE.value,
            "health_status": request.health_status.value,
            "age_months": request.age_months,
            "weight_kg": request.weight_kg,
            "breed": request.breed,
            "gender": request.gender.value if request.gender else None,
            "notes": request.notes,
            "vaccination_records": [],
            "medical_history": [],
            "movement_history": [],
            "last_known_position": {"distance_from_boundary": 0, "sensor_id": None, "timestamp": now},
            "last_detected": now,
            "created_at": now,
            "updated_at": now,
        }

        batch = self.store.batch()
        batch.create("livestock", livestock_id, animal)
        self.counters.stage(batch, EntityType.ZONE, request.zone_id, "current_livestock_count", 1)
        self.counters.stage(batch, EntityType.FARM, request.farm_id, "livestock_count", 1)
        await self.counters.commit(batch)

        logger.info(f"[livestock] {request.animal_type.value} {tag} added to zone {request.zone_id}")
        return {"livestock_id": livestock_id, **animal}

    async def list_livestock(
        self,
        farmer_id: str,
        farm_id: Optional[str] = None,
        zone_id: Optional[str] = None,
        animal_type: Optional[str] = None,
        status: Optional[BoundaryStatus] = None,
        health_status: Optional[HealthStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Filtered, paginated list; total counts the whole filtered set."""
        if farm_id:
            await self.farms.get_owned_farm(farm_id, farmer_id)
            filters = [("farm_id", "==", farm_id)]
        else:
            filters = [("farmer_id", "==", farmer_id)]
        if zone_id:
            filters.append(("zone_id", "==", zone_id))
        if animal_type:
            filters.append(("animal_type", "==", animal_type))
        if status:
            filters.append(("current_status", "==", status.value))
        if health_status:
            filters.append(("health_status", "==", health_status.value))

        docs = await self.store.query("livestock", filters)
        docs.sort(key=lambda d: d.data.get("created_at") or utcnow(), reverse=True)
        page = docs[offset:offset + limit]
        return {
            "count": len(page),
            "total": len(docs),
            "limit": limit,
            "offset": offset,
            "livestock": [d.to_dict("livestock_id") for d in page],
        }

    async def details(self, livestock_id: str, farmer_id: str) -> dict[str, Any]:
        animal = await self.get_owned(livestock_id, farmer_id)
        alerts = await self.store.query("alerts", [("livestock_id", "==", livestock_id)])
        alerts.sort(key=lambda d: d.data.get("detected_at") or utcnow(), reverse=True)
        return {
            **animal.to_dict("livestock_id"),
            "recent_alerts": [a.to_dict("alert_id") for a in alerts[:RECENT_ALERTS_LIMIT]],
        }

    async def update(self, livestock_id: str, farmer_id: str, request: UpdateLivestockRequest) -> dict[str, Any]:
        animal = await self.get_owned(livestock_id, farmer_id)
        changes = request.model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "health_status" in changes:
            changes["health_status"] = request.health_status.value

        now = utcnow()
        changes["updated_at"] = now
        moved_from = moved_to = None

        old_zone_id = animal.data.get("zone_id")
        new_zone_id = changes.get("zone_id")
        if new_zone_id and new_zone_id != old_zone_id:
            new_zone = await self.farms.get_owned_zone(new_zone_id, farmer_id)
            old_farm_id = animal.data.get("farm_id")
            new_farm_id = new_zone.data.get("farm_id")
            if new_farm_id != old_farm_id:
                await self._ensure_unique_tag(new_farm_id, animal.data.get("identification_tag"), livestock_id)

            movement = {
                "from_zone_id": old_zone_id,
                "from_zone_name": animal.data.get("zone_name"),
                "to_zone_id": new_zone_id,
                "to_zone_name": new_zone.data.get("zone_name"),
                "moved_at": now,
                "moved_by": farmer_id,
            }
            changes["zone_name"] = new_zone.data.get("zone_name")
            changes["farm_id"] = new_farm_id
            changes["movement_history"] = [*animal.data.get("movement_history", []), movement]

            moved_from, moved_to = (old_zone_id, old_farm_id), (new_zone_id, new_farm_id)
            logger.info(f"[livestock] {livestock_id} moved {old_zone_id} -> {new_zone_id}")

        batch = self.store.batch()
        batch.update("livestock", livestock_id, changes)
        if moved_to:
            self.counters.reparent(batch, EntityType.ZONE, "current_livestock_count", moved_from[0], moved_to[0])
            self.counters.reparent(batch, EntityType.FARM, "livestock_count", moved_from[1], moved_to[1])
        await self.counters.commit(batch)
        return {"livestock_id": livestock_id, **animal.data, **changes}

    async def delete(self, livestock_id: str, farmer_id: str) -> None:
        animal = await self.get_owned(livestock_id, farmer_id)

        batch = self.store.batch()
        batch.delete("livestock", livestock_id)
        self.counters.stage(batch, EntityType.ZONE, animal.data["zone_id"], "current_livestock_count", -1)
        self.counters.stage(batch, EntityType.FARM, animal.data["farm_id"], "livestock_count", -1)
        await self.counters.commit(batch)
        logger.info(f"[livestock] {livestock_id} deleted")

    # =========================================================================
    # HEALTH RECORDS
    # =========================================================================

    async def add_vaccination(self, livestock_id: str, farmer_id: str, request: VaccinationRequest) -> dict:
        await self.get_owned(livestock_id, farmer_id)
        record = {"record_id": new_document_id(), **request.model_dump(), "recorded_at": utcnow()}
        await self.store.array_union(
            "livestock", livestock_id, "vaccination_records", record, extra={"updated_at": utcnow()}
        )
        return record

    async def add_medical_record(self, livestock_id: str, farmer_id: str, request: MedicalRecordRequest) -> dict:
        """Adds the record and marks the animal sick."""
        await self.get_owned(livestock_id, farmer_id)
        record = {"record_id": new_document_id(), **request.model_dump(), "recorded_at": utcnow()}
        await self.store.array_union(
            "livestock", livestock_id, "medical_history", record,
            extra={"health_status": HealthStatus.SICK.value, "updated_at": utcnow()},
        )
        return record

    async def farm_statistics(self, farm_id: str, farmer_id: str) -> dict[str, Any]:
        await self.farms.get_owned_farm(farm_id, farmer_id)
        animals = [a.data for a in await self.store.query("livestock", [("farm_id", "==", farm_id)])]
        return {
            "farm_id": farm_id,
            "total": len(animals),
            "by_type": dict(Counter(a.get("animal_type") for a in animals)),
            "by_zone": dict(Counter(a.get("zone_name") or a.get("zone_id") for a in animals)),
            "by_health": dict(Counter(a.get("health_status") for a in animals)),
            "by_status": dict(Counter(a.get("current_status") for a in animals)),
        }

    # =========================================================================
    # SENSOR SIGHTINGS
    # =========================================================================

    async def check_sighting(self, livestock_id: str, sensor: dict[str, Any]) -> Document:
        """Validate that a sensor may report this animal (same farm)."""
        animal = await self.store.get("livestock", livestock_id)
        if animal is None:
            raise NotFoundError("Livestock not found")
        if animal.data.get("farm_id") != sensor.get("farm_id"):
            raise ValidationError("Livestock is not on this sensor's farm")
        return animal

    async def record_sighting(self, livestock_id: str, reading: dict[str, Any], breach: bool) -> None:
        """Update boundary status and last known position from a reading."""
        seen_at = ms_to_datetime(reading["timestamp"])
        status = BoundaryStatus.OUTSIDE if breach else BoundaryStatus.INSIDE
        await self.store.update("livestock", livestock_id, {
            "current_status": status.value,
            "last_detected": seen_at,
            "last_known_position": {
                "distance_from_boundary": reading["distance_measured"],
                "sensor_id": reading["sensor_id"],
                "timestamp": seen_at,
            },
        })
