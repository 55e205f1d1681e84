"""
Livestock API Router
====================

ALL ENDPOINTS:
-------------
POST   /api/livestock                    - Add an animal to a zone
GET    /api/livestock                    - List with filters and pagination
GET    /api/livestock/stats/{farm_id}    - Counts by type, zone, health, status
GET    /api/livestock/{id}               - Animal with its 10 most recent alerts
PUT    /api/livestock/{id}               - Update (zone change moves the animal)
DELETE /api/livestock/{id}               - Remove an animal
POST   /api/livestock/{id}/vaccination   - Add a vaccination record
POST   /api/livestock/{id}/medical       - Add a medical record (marks it sick)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from zonealert.dependencies import get_container, get_current_user
from zonealert.errors import ValidationError
from zonealert.models import (
    AnimalType,
    ApiResponse,
    BoundaryStatus,
    CreateLivestockRequest,
    HealthStatus,
    MedicalRecordRequest,
    UpdateLivestockRequest,
    VaccinationRequest,
)
from zonealert.services import ServiceContainer
from zonealert.utils import require_doc_id, validate_identification_tag


router = APIRouter(prefix="/api/livestock", tags=["livestock"])


@router.post("", response_model=ApiResponse, status_code=201)
async def create_livestock(
    request: CreateLivestockRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Add an animal.

    identification_tag (ear tag / RFID label) must be unique on the farm.
    """
    if not validate_identification_tag(request.identification_tag):
        raise ValidationError(
            "Invalid identification_tag",
            errors=[{"field": "identification_tag", "message": "Letters, digits, spaces and _ . / - only"}],
        )
    animal = await container.livestock.create(farmer["id"], request)
    return ApiResponse(message="Livestock added", data=animal)


@router.get("", response_model=ApiResponse)
async def list_livestock(
    farm_id: Optional[str] = None,
    zone_id: Optional[str] = None,
    animal_type: Optional[AnimalType] = None,
    status: Optional[BoundaryStatus] = None,
    health_status: Optional[HealthStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.livestock.list_livestock(
        farmer["id"],
        farm_id=farm_id,
        zone_id=zone_id,
        animal_type=animal_type.value if animal_type else None,
        status=status,
        health_status=health_status,
        limit=limit,
        offset=offset,
    )
    return ApiResponse(message=f"Found {result['total']} animals", data=result)


@router.get("/stats/{farm_id}", response_model=ApiResponse)
async def livestock_statistics(
    farm_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(farm_id, "farm_id")
    stats = await container.livestock.farm_statistics(farm_id, farmer["id"])
    return ApiResponse(message="Livestock statistics", data=stats)


@router.get("/{livestock_id}", response_model=ApiResponse)
async def get_livestock(
    livestock_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(livestock_id, "livestock_id")
    animal = await container.livestock.details(livestock_id, farmer["id"])
    return ApiResponse(message="Livestock retrieved", data=animal)


@router.put("/{livestock_id}", response_model=ApiResponse)
async def update_livestock(
    livestock_id: str,
    request: UpdateLivestockRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Update an animal. Sending a new zone_id moves it: the zone counts (and
    farm counts, if the zone is on another farm) follow, and the move is
    added to movement_history.
    """
    require_doc_id(livestock_id, "livestock_id")
    animal = await container.livestock.update(livestock_id, farmer["id"], request)
    return ApiResponse(message="Livestock updated", data=animal)


@router.delete("/{livestock_id}", response_model=ApiResponse)
async def delete_livestock(
    livestock_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(livestock_id, "livestock_id")
    await container.livestock.delete(livestock_id, farmer["id"])
    return ApiResponse(message="Livestock deleted")


@router.post("/{livestock_id}/vaccination", response_model=ApiResponse, status_code=201)
async def add_vaccination(
    livestock_id: str,
    request: VaccinationRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(livestock_id, "livestock_id")
    record = await container.livestock.add_vaccination(livestock_id, farmer["id"], request)
    return ApiResponse(message="Vaccination recorded", data=record)


@router.post("/{livestock_id}/medical", response_model=ApiResponse, status_code=201)
async def add_medical_record(
    livestock_id: str,
    request: MedicalRecordRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(livestock_id, "livestock_id")
    record = await container.livestock.add_medical_record(livestock_id, farmer["id"], request)
    return ApiResponse(message="Medical record added", data=record)
