"""
Zones API Router
================

Boundary zones are the areas of a farm a group of animals is kept in.

POST   /api/zones          - Create a zone on one of your farms
GET    /api/zones          - List zones (optionally ?farm_id=)
GET    /api/zones/{id}     - Zone with its livestock and sensors
PUT    /api/zones/{id}     - Update (renaming refreshes the animals' zone_name)
DELETE /api/zones/{id}     - Delete an empty zone
"""

from typing import Optional

from fastapi import APIRouter, Depends

from zonealert.dependencies import get_container, get_current_user
from zonealert.models import ApiResponse, CreateZoneRequest, UpdateZoneRequest
from zonealert.services import ServiceContainer
from zonealert.utils import require_doc_id


router = APIRouter(prefix="/api/zones", tags=["zones"])


@router.post("", response_model=ApiResponse, status_code=201)
async def create_zone(
    request: CreateZoneRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    zone = await container.farms.create_zone(farmer["id"], request)
    return ApiResponse(message="Zone created", data=zone)


@router.get("", response_model=ApiResponse)
async def list_zones(
    farm_id: Optional[str] = None,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    zones = await container.farms.list_zones(farmer["id"], farm_id)
    return ApiResponse(message=f"Found {len(zones)} zones", data=zones)


@router.get("/{zone_id}", response_model=ApiResponse)
async def get_zone(
    zone_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(zone_id, "zone_id")
    zone = await container.farms.zone_details(zone_id, farmer["id"])
    return ApiResponse(message="Zone retrieved", data=zone)


@router.put("/{zone_id}", response_model=ApiResponse)
async def update_zone(
    zone_id: str,
    request: UpdateZoneRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(zone_id, "zone_id")
    zone = await container.farms.update_zone(zone_id, farmer["id"], request)
    return ApiResponse(message="Zone updated", data=zone)


@router.delete("/{zone_id}", response_model=ApiResponse)
async def delete_zone(
    zone_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Delete a zone with no livestock and no active sensors (409 otherwise)."""
    require_doc_id(zone_id, "zone_id")
    await container.farms.delete_zone(zone_id, farmer["id"])
    return ApiResponse(message="Zone deleted")
