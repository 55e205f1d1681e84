"""
Farm Service
============

Farms, their boundary zones, and farmer profiles.

OWNERSHIP:
    A farmer only ever sees farms whose farmer_id is their uid. Zones,
    sensors and livestock inherit access from their farm, so every other
    service asks this one (get_owned_farm / get_owned_zone) before touching
    anything.

COUNTERS:
    create/delete farm  -> farmers.farms_count  +1/-1   (same batch)
    create/delete zone  -> farms.zones_count    +1/-1   (same batch)
    rename zone         -> zone_name refreshed on every animal in the zone
    A farm or zone that still has children cannot be deleted (409).

Author: ZoneAlert Team
"""

import logging
from collections import Counter
from typing import Any, Optional

from zonealert.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from zonealert.models import CreateFarmRequest, CreateZoneRequest, UpdateFarmRequest, UpdateZoneRequest
from zonealert.services.counters import CounterMaintainer, EntityType
from zonealert.storage.base import Document, DocumentStore, new_document_id, utcnow

logger = logging.getLogger(__name__)


def _by_newest(docs: list[Document]) -> list[Document]:
    return sorted(docs, key=lambda d: d.data.get("created_at") or utcnow(), reverse=True)


class FarmService:
    """Farms, zones and farmer lookups."""

    def __init__(self, store: DocumentStore, counters: CounterMaintainer):
        self.store = store
        self.counters = counters

    # =========================================================================
    # OWNERSHIP
    # =========================================================================

    async def get_owned_farm(self, farm_id: str, farmer_id: str) -> Document:
        farm = await self.store.get("farms", farm_id)
        if farm is None:
            raise NotFoundError("Farm not found")
        if farm.data.get("farmer_id") != farmer_id:
            raise PermissionDeniedError("You do not have access to this farm")
        return farm

    async def get_owned_zone(self, zone_id: str, farmer_id: str) -> Document:
        zone = await self.store.get("boundary_zones", zone_id)
        if zone is None:
            raise NotFoundError("Zone not found")
        await self.get_owned_farm(zone.data.get("farm_id"), farmer_id)
        return zone

    async def farm_ids(self, farmer_id: str) -> list[str]:
        """Ids of every farm the farmer owns."""
        farms = await self.store.query("farms", [("farmer_id", "==", farmer_id)])
        return [f.id for f in farms]

    # =========================================================================
    # FARMS
    # =========================================================================

    async def create_farm(self, farmer: dict[str, Any], request: CreateFarmRequest) -> dict[str, Any]:
        farm_id = new_document_id()
        now = utcnow()
        farm = {
            "farmer_id": farmer["id"],
            "farmer_name": farmer.get("name"),
            "farm_name": request.farm_name.strip(),
            "location": request.location.model_dump(),
            "total_area": request.total_area,
            "farm_type": request.farm_type,
            "zones_count": 0,
            "livestock_count": 0,
            "sensors_count": 0,
            "active_alerts": 0,
            "created_at": now,
            "updated_at": now,
        }

        batch = self.store.batch()
        batch.create("farms", farm_id, farm)
        self.counters.stage(batch, EntityType.FARMER, farmer["id"], "farms_count", 1)
        await self.counters.commit(batch)

        logger.info(f"[farms] farm {farm_id} created for farmer {farmer['id']}")
        return {"farm_id": farm_id, **farm}

    async def list_farms(self, farmer_id: str) -> list[dict[str, Any]]:
        farms = await self.store.query("farms", [("farmer_id", "==", farmer_id)])
        return [f.to_dict("farm_id") for f in _by_newest(farms)]

    async def farm_details(self, farm_id: str, farmer_id: str) -> dict[str, Any]:
        """Farm with its zones, livestock and a statistics block."""
        farm = await self.get_owned_farm(farm_id, farmer_id)
        zones = await self.store.query("boundary_zones", [("farm_id", "==", farm_id)])
        livestock = await self.store.query("livestock", [("farm_id", "==", farm_id)])

        return {
            **farm.to_dict("farm_id"),
            "zones": [z.to_dict("zone_id") for z in zones],
            "livestock": [a.to_dict("livestock_id") for a in livestock],
            "statistics": {
                "total_zones": len(zones),
                "total_livestock": len(livestock),
                "active_alerts": farm.data.get("active_alerts", 0),
                "livestock_by_type": dict(Counter(a.data.get("animal_type") for a in livestock)),
                "livestock_by_status": dict(Counter(a.data.get("current_status") for a in livestock)),
            },
        }

    async def update_farm(self, farm_id: str, farmer_id: str, request: UpdateFarmRequest) -> dict[str, Any]:
        farm = await self.get_owned_farm(farm_id, farmer_id)
        changes = request.model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "farm_name" in changes:
            changes["farm_name"] = changes["farm_name"].strip()
        changes["updated_at"] = utcnow()

        await self.store.update("farms", farm_id, changes)
        return {"farm_id": farm_id, **farm.data, **changes}

    async def delete_farm(self, farm_id: str, farmer_id: str) -> None:
        await self.get_owned_farm(farm_id, farmer_id)

        zones = await self.store.count("boundary_zones", [("farm_id", "==", farm_id)])
        livestock = await self.store.count("livestock", [("farm_id", "==", farm_id)])
        if zones or livestock:
            raise ConflictError(
                f"Farm still has {zones} zone(s) and {livestock} animal(s); remove them first"
            )

        batch = self.store.batch()
        batch.delete("farms", farm_id)
        self.counters.stage(batch, EntityType.FARMER, farmer_id, "farms_count", -1)
        await self.counters.commit(batch)
        logger.info(f"[farms] farm {farm_id} deleted")

    # =========================================================================
    # ZONES
    # =========================================================================

    async def create_zone(self, farmer_id: str, request: CreateZoneRequest) -> dict[str, Any]:
        await self.get_owned_farm(request.farm_id, farmer_id)

        zone_id = new_document_id()
        now = utcnow()
        zone = {
            "farm_id": request.farm_id,
            "farmer_id": farmer_id,
            "zone_name": request.zone_name.strip(),
            "zone_type": request.zone_type.value,
            "description": request.description,
            "boundary_points": [p.model_dump() for p in request.boundary_points],
            "max_capacity": request.max_capacity,
            "current_livestock_count": 0,
            "sensors_count": 0,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }

        batch = self.store.batch()
        batch.create("boundary_zones", zone_id, zone)
        self.counters.stage(batch, EntityType.FARM, request.farm_id, "zones_count", 1)
        await self.counters.commit(batch)

        logger.info(f"[zones] zone {zone_id} created on farm {request.farm_id}")
        return {"zone_id": zone_id, **zone}

    async def list_zones(self, farmer_id: str, farm_id: Optional[str] = None) -> list[dict[str, Any]]:
        if farm_id:
            await self.get_owned_farm(farm_id, farmer_id)
            zones = await self.store.query("boundary_zones", [("farm_id", "==", farm_id)])
        else:
            zones = await self.store.query("boundary_zones", [("farmer_id", "==", farmer_id)])
        return [z.to_dict("zone_id") for z in _by_newest(zones)]

    async def zone_details(self, zone_id: str, farmer_id: str) -> dict[str, Any]:
        zone = await self.get_owned_zone(zone_id, farmer_id)
        livestock = await self.store.query("livestock", [("zone_id", "==", zone_id)])
        sensors = await self.store.query("sensor_units", [("zone_id", "==", zone_id)])
        return {
            **zone.to_dict("zone_id"),
            "livestock": [a.to_dict("livestock_id") for a in livestock],
            "sensors": [s.to_dict("sensor_id") for s in sensors if s.data.get("is_active", True)],
        }

    async def update_zone(self, zone_id: str, farmer_id: str, request: UpdateZoneRequest) -> dict[str, Any]:
        zone = await self.get_owned_zone(zone_id, farmer_id)
        changes = request.model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "zone_type" in changes:
            changes["zone_type"] = request.zone_type.value
        changes["updated_at"] = utcnow()

        batch = self.store.batch()
        batch.update("boundary_zones", zone_id, changes)

        # zone_name is cached on every animal in the zone
        new_name = changes.get("zone_name")
        if new_name and new_name != zone.data.get("zone_name"):
            animals = await self.store.query("livestock", [("zone_id", "==", zone_id)])
            for animal in animals:
                batch.update("livestock", animal.id, {"zone_name": new_name})

        await self.counters.commit(batch)
        return {"zone_id": zone_id, **zone.data, **changes}

    async def delete_zone(self, zone_id: str, farmer_id: str) -> None:
        zone = await self.get_owned_zone(zone_id, farmer_id)

        livestock = await self.store.count("livestock", [("zone_id", "==", zone_id)])
        sensors = await self.store.query("sensor_units", [("zone_id", "==", zone_id)])
        active_sensors = sum(1 for s in sensors if s.data.get("is_active", True))
        if livestock or active_sensors:
            raise ConflictError(
                f"Zone still has {livestock} animal(s) and {active_sensors} sensor(s); move or remove them first"
            )

        batch = self.store.batch()
        batch.delete("boundary_zones", zone_id)
        self.counters.stage(batch, EntityType.FARM, zone.data["farm_id"], "zones_count", -1)
        await self.counters.commit(batch)
        logger.info(f"[zones] zone {zone_id} deleted")

    # =========================================================================
    # FARMERS
    # =========================================================================

    async def get_farmer(self, farmer_id: str, caller_id: str) -> dict[str, Any]:
        """Farmer profile; farmers can only read their own."""
        if farmer_id != caller_id:
            raise PermissionDeniedError("You can only view your own profile")
        farmer = await self.store.get("farmers", farmer_id)
        if farmer is None:
            raise NotFoundError("Farmer not found")
        return farmer.to_dict("farmer_id")
