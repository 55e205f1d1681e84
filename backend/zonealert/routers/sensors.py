"""
Sensors API Router
==================

Two kinds of callers knock on these doors:

- IoT sensor units (LIDAR / ultrasonic) posting readings, authenticated
  with a device API key (`api_key` in the body or `x-api-key` header)
- The dashboard / mobile app managing sensor units, authenticated with the
  farmer's bearer token

ALL ENDPOINTS:
-------------
POST   /api/sensors/reading          - Submit one distance reading (device)
POST   /api/sensors/batch            - Submit buffered readings (device)
PUT    /api/sensors/{id}/battery     - Report battery level (device)

GET    /api/sensors/readings/{id}    - Reading history for a sensor
GET    /api/sensors/live/{id}        - Live status for a sensor
POST   /api/sensors/register         - Register a new sensor unit
GET    /api/sensors                  - List sensors (online/offline/all)
GET    /api/sensors/{id}             - Get one sensor
PUT    /api/sensors/{id}             - Update threshold / location / firmware
DELETE /api/sensors/{id}             - Deactivate a sensor (soft delete)

Author: ZoneAlert Team
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from zonealert.dependencies import device_api_key, get_container, get_current_user, verify_device
from zonealert.models import (
    ApiResponse,
    BatchReadingRequest,
    BatteryUpdateRequest,
    ReadingStatus,
    RegisterSensorRequest,
    SensorReadingRequest,
    SensorStatusFilter,
    UpdateSensorRequest,
)
from zonealert.services import ServiceContainer
from zonealert.utils import parse_iso_date, require_doc_id


router = APIRouter(prefix="/api/sensors", tags=["sensors"])


# =============================================================================
# DEVICE ENDPOINTS
# =============================================================================

@router.post("/reading", response_model=ApiResponse)
async def submit_reading(
    request: SensorReadingRequest,
    header_key: Optional[str] = Depends(device_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """
    Submit one distance reading.

    The reading is compared with the sensor's boundary threshold: anything
    closer is an alert (critical under 25, otherwise high). Breaches create
    an alert and a push notification; if that part fails the reading is
    still accepted.
    """
    require_doc_id(request.sensor_id, "sensor_id")
    device = await verify_device(container, request.api_key, header_key)
    result = await container.readings.submit_reading(request, device)

    message = "Reading recorded"
    if result["status"] == ReadingStatus.ALERT.value:
        message = f"Boundary breach detected ({result['severity']})"
    return ApiResponse(message=message, data=result)


@router.post("/batch", response_model=ApiResponse)
async def submit_batch(
    request: BatchReadingRequest,
    header_key: Optional[str] = Depends(device_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """
    Submit readings buffered while the device was offline.

    Each item may carry its own epoch-ms timestamp. Items for unknown or
    deactivated sensors are counted as rejected; the rest are stored.
    """
    device = await verify_device(container, request.api_key, header_key)
    result = await container.readings.submit_batch(request, device)
    return ApiResponse(message=f"{result['accepted']} of {result['received']} readings stored", data=result)


@router.put("/{sensor_id}/battery", response_model=ApiResponse)
async def update_battery(
    sensor_id: str,
    request: BatteryUpdateRequest,
    header_key: Optional[str] = Depends(device_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """Report the battery level. Below 20% a low battery alert is raised."""
    require_doc_id(sensor_id, "sensor_id")
    device = await verify_device(container, request.api_key, header_key)
    result = await container.sensors.update_battery(sensor_id, request.battery_level, device)
    return ApiResponse(message="Battery level updated", data=result)


# =============================================================================
# DASHBOARD ENDPOINTS
# =============================================================================

@router.get("/readings/{sensor_id}", response_model=ApiResponse)
async def get_readings(
    sensor_id: str,
    start_date: Optional[str] = Query(None, description="ISO 8601, defaults to start of today (UTC)"),
    end_date: Optional[str] = Query(None, description="ISO 8601, defaults to now"),
    limit: int = Query(100, ge=1, le=1000),
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Reading history, newest first."""
    require_doc_id(sensor_id, "sensor_id")
    result = await container.readings.list_readings(
        sensor_id,
        farmer["id"],
        start=parse_iso_date(start_date, "start_date"),
        end=parse_iso_date(end_date, "end_date"),
        limit=limit,
    )
    return ApiResponse(message=f"Found {result['count']} readings", data=result)


@router.get("/live/{sensor_id}", response_model=ApiResponse)
async def get_live_status(
    sensor_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Latest reading, online flag and staleness for one sensor."""
    require_doc_id(sensor_id, "sensor_id")
    result = await container.readings.live(sensor_id, farmer["id"])
    return ApiResponse(message="Live status retrieved", data=result)


@router.post("/register", response_model=ApiResponse, status_code=201)
async def register_sensor(
    request: RegisterSensorRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Register a sensor unit on one of your zones.

    The zone must belong to the given farm, and the same device_id cannot be
    active twice on a farm.
    """
    result = await container.sensors.register(farmer["id"], request)
    return ApiResponse(message="Sensor registered", data=result)


@router.get("", response_model=ApiResponse)
async def list_sensors(
    farm_id: Optional[str] = None,
    zone_id: Optional[str] = None,
    status: SensorStatusFilter = SensorStatusFilter.ALL,
    include_inactive: bool = False,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """List your sensors with their live status."""
    sensors = await container.sensors.list_sensors(
        farmer["id"], farm_id=farm_id, zone_id=zone_id, status=status, include_inactive=include_inactive
    )
    return ApiResponse(message=f"Found {len(sensors)} sensors", data=sensors)


@router.get("/{sensor_id}", response_model=ApiResponse)
async def get_sensor(
    sensor_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(sensor_id, "sensor_id")
    sensor = await container.sensors.get_sensor(sensor_id, farmer["id"])
    return ApiResponse(message="Sensor retrieved", data=sensor)


@router.put("/{sensor_id}", response_model=ApiResponse)
async def update_sensor(
    sensor_id: str,
    request: UpdateSensorRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(sensor_id, "sensor_id")
    sensor = await container.sensors.update(sensor_id, farmer["id"], request)
    return ApiResponse(message="Sensor updated", data=sensor)


@router.delete("/{sensor_id}", response_model=ApiResponse)
async def deactivate_sensor(
    sensor_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Deactivate a sensor.

    This is a soft delete: history and alerts stay, the sensor stops
    counting towards its farm and zone, and its readings are refused.
    """
    require_doc_id(sensor_id, "sensor_id")
    sensor = await container.sensors.deactivate(sensor_id, farmer["id"])
    return ApiResponse(message="Sensor deactivated", data=sensor)
