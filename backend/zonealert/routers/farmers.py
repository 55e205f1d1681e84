"""
Farmers API Router
==================

GET /api/farmers/{farmer_id} - Farmer profile (your own only)
"""

from fastapi import APIRouter, Depends

from zonealert.dependencies import get_container, get_current_user
from zonealert.models import ApiResponse
from zonealert.services import ServiceContainer
from zonealert.utils import require_doc_id


router = APIRouter(prefix="/api/farmers", tags=["farmers"])


@router.get("/{farmer_id}", response_model=ApiResponse)
async def get_farmer(
    farmer_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(farmer_id, "farmer_id")
    profile = await container.farms.get_farmer(farmer_id, farmer["id"])
    return ApiResponse(message="Farmer retrieved", data=profile)
