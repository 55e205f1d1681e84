"""
Alert Models
============
Alert types and the request/query shapes of the alerts and analytics APIs.
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class AlertType(str, Enum):
    """Why an alert was raised."""
    BOUNDARY_BREACH = "boundary_breach"
    LOW_BATTERY = "low_battery"


class DeliveryStatus(str, Enum):
    """Push delivery state of a notification row."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class TimeRange(str, Enum):
    """Dashboard windows, each with the number of hours used for the alert rate."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class TrendInterval(str, Enum):
    """Bucket width for GET /api/analytics/trends."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class DeviceSort(str, Enum):
    ALERTS = "alerts"
    LAST_SEEN = "last_seen"


class DeviceAlertRequest(BaseModel):
    """
    Alert decided on the device itself (edge evaluation).

    Example Request:
        POST /api/alerts
        {"deviceId": "8Hk2...", "alert": true, "distance": 18.2, "api_key": "..."}
    """
    sensor_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("sensor_id", "deviceId"),
        description="Sensor that raised the alert",
    )
    alert: bool = Field(..., description="True for a breach, False for an all-clear ping")
    distance: float = Field(..., ge=0, description="Distance measured at the time")
    timestamp: Optional[int] = Field(None, ge=0, description="Epoch ms on the device")
    api_key: Optional[str] = None
