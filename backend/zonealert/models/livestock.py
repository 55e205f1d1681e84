"""
Livestock Models
================
Animals tracked inside boundary zones, plus their health records.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AnimalType(str, Enum):
    GOAT = "Goat"
    CHICKEN = "Chicken"
    COW = "Cow"
    SHEEP = "Sheep"
    PIG = "Pig"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    SICK = "sick"
    INJURED = "injured"
    QUARANTINE = "quarantine"


class BoundaryStatus(str, Enum):
    """Where the animal was last seen relative to its zone boundary."""
    INSIDE = "inside_boundary"
    OUTSIDE = "outside_boundary"
    UNKNOWN = "unknown"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class CreateLivestockRequest(BaseModel):
    """
    Example Request:
        POST /api/livestock
        {"farm_id": "...", "zone_id": "...", "animal_type": "Goat", "identification_tag": "GT-001"}
    """
    farm_id: str = Field(..., min_length=1)
    zone_id: str = Field(..., min_length=1)
    animal_type: AnimalType
    identification_tag: str = Field(..., min_length=1, max_length=50)
    age_months: Optional[int] = Field(None, ge=0)
    weight_kg: Optional[float] = Field(None, ge=0)
    health_status: HealthStatus = HealthStatus.HEALTHY
    breed: Optional[str] = Field(None, max_length=100)
    gender: Optional[Gender] = None
    notes: Optional[str] = Field(None, max_length=1000)


class UpdateLivestockRequest(BaseModel):
    """
    Only provided fields are updated.

    Changing zone_id moves the animal and adjusts both zones' counters.
    """
    zone_id: Optional[str] = Field(None, min_length=1)
    health_status: Optional[HealthStatus] = None
    weight_kg: Optional[float] = Field(None, ge=0)
    age_months: Optional[int] = Field(None, ge=0)
    breed: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class VaccinationRequest(BaseModel):
    vaccine_name: str = Field(..., min_length=1, max_length=100)
    vaccination_date: datetime
    next_due_date: Optional[datetime] = None
    veterinarian: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class MedicalRecordRequest(BaseModel):
    condition: str = Field(..., min_length=1, max_length=200)
    treatment: str = Field(..., min_length=1, max_length=500)
    date: datetime
    veterinarian: Optional[str] = Field(None, max_length=100)
    medication: Optional[str] = Field(None, max_length=200)
    follow_up_date: Optional[datetime] = None
