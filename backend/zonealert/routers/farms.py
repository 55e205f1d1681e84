"""
Farms API Router
================

POST   /api/farms          - Create a farm
GET    /api/farms          - List your farms
GET    /api/farms/{id}     - Farm with zones, livestock and statistics
PUT    /api/farms/{id}     - Update a farm
DELETE /api/farms/{id}     - Delete an empty farm
"""

from fastapi import APIRouter, Depends

from zonealert.dependencies import get_container, get_current_user
from zonealert.models import ApiResponse, CreateFarmRequest, UpdateFarmRequest
from zonealert.services import ServiceContainer
from zonealert.utils import require_doc_id


router = APIRouter(prefix="/api/farms", tags=["farms"])


@router.post("", response_model=ApiResponse, status_code=201)
async def create_farm(
    request: CreateFarmRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    farm = await container.farms.create_farm(farmer, request)
    return ApiResponse(message="Farm created", data=farm)


@router.get("", response_model=ApiResponse)
async def list_farms(
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    farms = await container.farms.list_farms(farmer["id"])
    return ApiResponse(message=f"Found {len(farms)} farms", data=farms)


@router.get("/{farm_id}", response_model=ApiResponse)
async def get_farm(
    farm_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(farm_id, "farm_id")
    farm = await container.farms.farm_details(farm_id, farmer["id"])
    return ApiResponse(message="Farm retrieved", data=farm)


@router.put("/{farm_id}", response_model=ApiResponse)
async def update_farm(
    farm_id: str,
    request: UpdateFarmRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(farm_id, "farm_id")
    farm = await container.farms.update_farm(farm_id, farmer["id"], request)
    return ApiResponse(message="Farm updated", data=farm)


@router.delete("/{farm_id}", response_model=ApiResponse)
async def delete_farm(
    farm_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Delete a farm. Its zones and livestock must be removed first (409 otherwise)."""
    require_doc_id(farm_id, "farm_id")
    await container.farms.delete_farm(farm_id, farmer["id"])
    return ApiResponse(message="Farm deleted")
