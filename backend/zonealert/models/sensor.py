"""
Sensor Models
=============
Pydantic models for sensor units, distance readings and live status.

This module defines:
- Enums: sensor hardware types, reading status, alert severity
- Request models: what IoT devices and the dashboard send us
- Internal models: the live status record kept per sensor

READING FLOW:
    ESP32 (LIDAR / ultrasonic) --POST /api/sensors/reading--> backend
        distance < threshold  -> status "alert"  (breach)
        distance >= threshold -> status "normal"

Author: ZoneAlert Team
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import Coordinates


# =============================================================================
# ENUMS
# =============================================================================

class SensorType(str, Enum):
    """
    Distance sensor hardware mounted on a boundary.

    Both report a distance in centimetres; only the range and accuracy differ.
    """
    LIDAR = "LIDAR"
    ULTRASONIC = "ULTRASONIC"


class ReadingStatus(str, Enum):
    """Outcome of evaluating one reading against the sensor's threshold."""
    NORMAL = "normal"
    ALERT = "alert"


class Severity(str, Enum):
    """
    Alert severity tiers.

    - CRITICAL: breach closer than the critical distance (25)
    - HIGH: any other breach
    - MEDIUM: maintenance alerts (low battery)
    """
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class SensorStatusFilter(str, Enum):
    """Filter for GET /api/sensors based on the live status record."""
    ONLINE = "online"
    OFFLINE = "offline"
    ALL = "all"


# =============================================================================
# REQUEST MODELS - What devices send to backend
# =============================================================================

class SensorReadingRequest(BaseModel):
    """
    One distance reading from a device.

    Example Request:
        POST /api/sensors/reading
        {
            "sensor_id": "8Hk2...",
            "distance_measured": 30.5,
            "sensor_type": "LIDAR",
            "api_key": "..."
        }
    """
    sensor_id: str = Field(..., min_length=1, description="Registered sensor id")
    distance_measured: float = Field(..., ge=0, description="Measured distance (cm)")
    sensor_type: SensorType = Field(..., description="Hardware type")
    api_key: Optional[str] = Field(None, description="Device key (or send x-api-key header)")
    livestock_id: Optional[str] = Field(
        None,
        description="Animal identified by the device (RFID), updates its boundary status"
    )


class BatchReadingItem(BaseModel):
    """A reading buffered on the device while it was offline."""
    sensor_id: str = Field(..., min_length=1)
    distance_measured: float = Field(..., ge=0)
    sensor_type: SensorType
    timestamp: Optional[int] = Field(
        None, ge=0, description="Epoch milliseconds when measured, defaults to now"
    )


class BatchReadingRequest(BaseModel):
    """
    Offline sync upload.

    Example Request:
        POST /api/sensors/batch
        {"readings": [{"sensor_id": "...", "distance_measured": 72, ...}], "api_key": "..."}
    """
    readings: list[BatchReadingItem] = Field(..., max_length=1000)
    api_key: Optional[str] = None


class RegisterSensorRequest(BaseModel):
    """
    Request body for registering a sensor unit on a zone.

    Fields:
        device_id: Hardware identifier printed on the unit
        sensor_type: LIDAR or ULTRASONIC
        farm_id / zone_id: Where the unit is mounted
        location_description: e.g. "North fence, gate 2"
        coordinates: GPS position of the unit
        boundary_threshold: Breach distance, defaults to 50
    """
    device_id: str = Field(..., min_length=1, max_length=100)
    sensor_type: SensorType
    farm_id: str = Field(..., min_length=1)
    zone_id: str = Field(..., min_length=1)
    location_description: str = Field(..., min_length=1, max_length=200)
    coordinates: Coordinates
    boundary_threshold: Optional[float] = Field(None, gt=0)
    firmware_version: str = Field(default="1.0.0", max_length=50)


class UpdateSensorRequest(BaseModel):
    """
    Request body for updating a sensor.

    All fields are optional - only provided fields will be updated.
    """
    boundary_threshold: Optional[float] = Field(None, gt=0, description="New breach threshold")
    location_description: Optional[str] = Field(None, min_length=1, max_length=200)
    coordinates: Optional[Coordinates] = None
    firmware_version: Optional[str] = Field(None, max_length=50)
    is_operational: Optional[bool] = None


class BatteryUpdateRequest(BaseModel):
    """Battery report from a device."""
    battery_level: float = Field(..., ge=0, le=100, description="Battery percentage")
    api_key: Optional[str] = None


# =============================================================================
# INTERNAL MODELS
# =============================================================================

class LiveStatus(BaseModel):
    """
    Last known state of a sensor, overwritten on every reading.

    Staleness is never stored; it is derived from last_timestamp when read.
    """
    last_reading: float = Field(default=0, description="Last distance measured")
    last_timestamp: int = Field(..., description="Epoch ms of the last reading")
    status: str = Field(default="inactive", description="normal, alert or inactive")
    is_online: bool = Field(default=False)
    battery_level: Optional[float] = Field(None, description="Last reported battery %")
