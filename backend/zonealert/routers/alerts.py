"""
Alerts API Router
=================

ALL ENDPOINTS:
-------------
POST   /api/alerts                 - Device-decided alert (device API key)
GET    /api/alerts                 - List alerts with filters
GET    /api/alerts/recent          - Alerts from the last N hours
GET    /api/alerts/device/{id}     - Alerts raised by one sensor
GET    /api/alerts/{id}            - Get one alert
PUT    /api/alerts/{id}/resolve    - Mark an alert resolved
DELETE /api/alerts/{id}            - Delete an alert

Everything except POST is scoped to the caller's farms.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from zonealert.dependencies import device_api_key, get_container, get_current_user, verify_device
from zonealert.models import AlertType, ApiResponse, DeviceAlertRequest
from zonealert.services import ServiceContainer
from zonealert.utils import parse_iso_date, require_doc_id


router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.post("", response_model=ApiResponse, status_code=201)
async def report_alert(
    request: DeviceAlertRequest,
    header_key: Optional[str] = Depends(device_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """
    Alert evaluated on the device.

    Send {"deviceId": ..., "alert": true, "distance": 18.2}. alert=false is
    accepted as a heartbeat and creates nothing.
    """
    require_doc_id(request.sensor_id, "sensor_id")
    device = await verify_device(container, request.api_key, header_key)
    result = await container.readings.report_device_alert(request, device)
    message = "Alert recorded" if result["alert"] else "Heartbeat recorded"
    return ApiResponse(message=message, data=result)


@router.get("", response_model=ApiResponse)
async def list_alerts(
    sensor_id: Optional[str] = None,
    farm_id: Optional[str] = None,
    alert_type: Optional[AlertType] = None,
    is_resolved: Optional[bool] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """List your alerts, newest first."""
    alerts = await container.alerts.list_alerts(
        farmer["id"],
        sensor_id=sensor_id,
        farm_id=farm_id,
        alert_type=alert_type,
        is_resolved=is_resolved,
        start=parse_iso_date(start_date, "start_date"),
        end=parse_iso_date(end_date, "end_date"),
        limit=limit,
    )
    return ApiResponse(message=f"Found {len(alerts)} alerts", data=alerts)


@router.get("/recent", response_model=ApiResponse)
async def recent_alerts(
    hours: int = Query(24, ge=1, le=24 * 30),
    limit: int = Query(100, ge=1, le=500),
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    alerts = await container.alerts.recent(farmer["id"], hours=hours, limit=limit)
    return ApiResponse(message=f"Found {len(alerts)} alerts in the last {hours} hours", data=alerts)


@router.get("/device/{sensor_id}", response_model=ApiResponse)
async def device_alerts(
    sensor_id: str,
    limit: int = Query(100, ge=1, le=500),
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(sensor_id, "sensor_id")
    alerts = await container.alerts.by_device(sensor_id, farmer["id"], limit=limit)
    return ApiResponse(message=f"Found {len(alerts)} alerts", data=alerts)


@router.get("/{alert_id}", response_model=ApiResponse)
async def get_alert(
    alert_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(alert_id, "alert_id")
    alert = await container.alerts.get(alert_id, farmer["id"])
    return ApiResponse(message="Alert retrieved", data=alert)


@router.put("/{alert_id}/resolve", response_model=ApiResponse)
async def resolve_alert(
    alert_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Resolve an alert. Resolving it again changes nothing."""
    require_doc_id(alert_id, "alert_id")
    alert = await container.alerts.resolve(alert_id, farmer["id"])
    return ApiResponse(message="Alert resolved", data=alert)


@router.delete("/{alert_id}", response_model=ApiResponse)
async def delete_alert(
    alert_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(alert_id, "alert_id")
    await container.alerts.delete(alert_id, farmer["id"])
    return ApiResponse(message="Alert deleted")
