"""
Analytics API Router
====================

Dashboard charts. Every endpoint folds the caller's alerts (optionally one
farm's, or one sensor's) into a summary.

GET /api/analytics/dashboard       - Totals, distance stats, alert rate
GET /api/analytics/trends          - Alerts per hour/day/week/month
GET /api/analytics/hourly          - 24 buckets for one local day
GET /api/analytics/heatmap         - 7 x 24 matrix (day of week x hour)
GET /api/analytics/devices         - Per-sensor totals
GET /api/analytics/devices/{id}    - One sensor's breakdown
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from zonealert.dependencies import get_container, get_current_user
from zonealert.errors import ValidationError
from zonealert.models import ApiResponse, DeviceSort, TimeRange, TrendInterval
from zonealert.services import ServiceContainer
from zonealert.utils import parse_iso_date, require_doc_id


router = APIRouter(prefix="/api/analytics", tags=["analytics"])


async def _farm_scope(container: ServiceContainer, farmer_id: str, farm_id: Optional[str]) -> list[str]:
    """Farm ids the query runs over: one owned farm, or all of them."""
    if farm_id:
        await container.farms.get_owned_farm(farm_id, farmer_id)
        return [farm_id]
    return await container.farms.farm_ids(farmer_id)


@router.get("/dashboard", response_model=ApiResponse)
async def dashboard(
    time_range: TimeRange = TimeRange.WEEK,
    farm_id: Optional[str] = None,
    sensor_id: Optional[str] = None,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    farm_ids = await _farm_scope(container, farmer["id"], farm_id)
    stats = await container.analytics.dashboard(farm_ids, time_range, sensor_id)
    return ApiResponse(message="Dashboard statistics", data=stats)


@router.get("/trends", response_model=ApiResponse)
async def trends(
    interval: TrendInterval = TrendInterval.DAY,
    start_date: Optional[str] = Query(None, description="ISO 8601, defaults to 7 days ago"),
    end_date: Optional[str] = Query(None, description="ISO 8601, defaults to now"),
    farm_id: Optional[str] = None,
    sensor_id: Optional[str] = None,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    end = parse_iso_date(end_date, "end_date") or datetime.now(timezone.utc)
    start = parse_iso_date(start_date, "start_date") or end - timedelta(days=7)
    farm_ids = await _farm_scope(container, farmer["id"], farm_id)
    result = await container.analytics.trends(farm_ids, start, end, interval, sensor_id)
    return ApiResponse(message=f"{len(result['trends'])} periods", data=result)


@router.get("/hourly", response_model=ApiResponse)
async def hourly(
    day: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    farm_id: Optional[str] = None,
    sensor_id: Optional[str] = None,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    parsed = None
    if day:
        try:
            parsed = date.fromisoformat(day)
        except ValueError:
            raise ValidationError(
                "Invalid date",
                errors=[{"field": "date", "message": "Must be YYYY-MM-DD"}],
            )
    farm_ids = await _farm_scope(container, farmer["id"], farm_id)
    result = await container.analytics.hourly(farm_ids, parsed, sensor_id)
    return ApiResponse(message="Hourly distribution", data=result)


@router.get("/heatmap", response_model=ApiResponse)
async def heatmap(
    weeks: int = Query(4, ge=1, le=52),
    farm_id: Optional[str] = None,
    sensor_id: Optional[str] = None,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    farm_ids = await _farm_scope(container, farmer["id"], farm_id)
    result = await container.analytics.heatmap(farm_ids, weeks, sensor_id)
    return ApiResponse(message="Alert heatmap", data=result)


@router.get("/devices", response_model=ApiResponse)
async def devices(
    sort_by: DeviceSort = DeviceSort.ALERTS,
    limit: int = Query(10, ge=1, le=100),
    farm_id: Optional[str] = None,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    farm_ids = await _farm_scope(container, farmer["id"], farm_id)
    result = await container.analytics.devices(farm_ids, sort_by, limit)
    return ApiResponse(message=f"{result['count']} devices", data=result)


@router.get("/devices/{sensor_id}", response_model=ApiResponse)
async def device(
    sensor_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(sensor_id, "sensor_id")
    await container.sensors.get_owned_sensor(sensor_id, farmer["id"])
    farm_ids = await container.farms.farm_ids(farmer["id"])
    result = await container.analytics.device(
        farm_ids,
        sensor_id,
        parse_iso_date(start_date, "start_date"),
        parse_iso_date(end_date, "end_date"),
    )
    return ApiResponse(message="Device statistics", data=result)
