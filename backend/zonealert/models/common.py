"""
Common Models
=============
Response envelope shared by every endpoint and the small value types that
several entities embed.

Every response looks like:
    {"success": true, "message": "...", "data": {...}}
or, on failure:
    {"success": false, "message": "...", "errors": [...]}
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Standard success envelope."""
    success: bool = Field(default=True, description="Whether the request succeeded")
    message: str = Field(..., description="Human-readable summary")
    data: Optional[Any] = Field(None, description="Payload, shape depends on the endpoint")


class FieldErrorDetail(BaseModel):
    """One entry of the `errors` list in a 400 response."""
    field: str
    message: str


class Coordinates(BaseModel):
    """WGS84 point."""
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
