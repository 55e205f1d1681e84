"""
Farm Models
===========
Farms and the boundary zones inside them.

A farm owns zones; zones own sensors and livestock. Both carry denormalized
child counters that the services keep in step with every write.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import Coordinates


class ZoneType(str, Enum):
    """
    - SAFE: grazing area, animals are expected here
    - DANGER: road, river or cliff edge
    - RESTRICTED: crops or neighbour land
    """
    SAFE = "safe"
    DANGER = "danger"
    RESTRICTED = "restricted"


class FarmLocation(BaseModel):
    address: str = Field(..., min_length=1, max_length=300)
    coordinates: Coordinates
    region: Optional[str] = Field(None, max_length=100)


class CreateFarmRequest(BaseModel):
    """
    Example Request:
        POST /api/farms
        {
            "farm_name": "Green Acres",
            "location": {"address": "Kumasi road", "coordinates": {"latitude": 6.7, "longitude": -1.6}},
            "total_area": 12.5
        }
    """
    farm_name: str = Field(..., min_length=1, max_length=100)
    location: FarmLocation
    total_area: float = Field(..., ge=0, description="Area in hectares")
    farm_type: Optional[str] = Field(None, max_length=50)


class UpdateFarmRequest(BaseModel):
    """Only provided fields are updated."""
    farm_name: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[FarmLocation] = None
    total_area: Optional[float] = Field(None, ge=0)
    farm_type: Optional[str] = Field(None, max_length=50)


class CreateZoneRequest(BaseModel):
    """A named boundary polygon inside a farm."""
    farm_id: str = Field(..., min_length=1)
    zone_name: str = Field(..., min_length=1, max_length=100)
    zone_type: ZoneType = ZoneType.SAFE
    description: Optional[str] = Field(None, max_length=500)
    boundary_points: list[Coordinates] = Field(default_factory=list)
    max_capacity: Optional[int] = Field(None, ge=0)


class UpdateZoneRequest(BaseModel):
    zone_name: Optional[str] = Field(None, min_length=1, max_length=100)
    zone_type: Optional[ZoneType] = None
    description: Optional[str] = Field(None, max_length=500)
    boundary_points: Optional[list[Coordinates]] = None
    max_capacity: Optional[int] = Field(None, ge=0)
