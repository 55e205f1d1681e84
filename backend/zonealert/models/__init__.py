"""
Models Package
==============

This is where all our request and response shapes live.
Import from here instead of the individual files.

Example:
    from zonealert.models import SensorReadingRequest, ApiResponse
"""

from .common import ApiResponse, Coordinates, FieldErrorDetail
from .sensor import (
    SensorType,
    ReadingStatus,
    Severity,
    SensorStatusFilter,
    SensorReadingRequest,
    BatchReadingItem,
    BatchReadingRequest,
    RegisterSensorRequest,
    UpdateSensorRequest,
    BatteryUpdateRequest,
    LiveStatus,
)
from .alert import (
    AlertType,
    DeliveryStatus,
    TimeRange,
    TrendInterval,
    DeviceSort,
    DeviceAlertRequest,
)
from .farm import (
    ZoneType,
    FarmLocation,
    CreateFarmRequest,
    UpdateFarmRequest,
    CreateZoneRequest,
    UpdateZoneRequest,
)
from .livestock import (
    AnimalType,
    HealthStatus,
    BoundaryStatus,
    Gender,
    CreateLivestockRequest,
    UpdateLivestockRequest,
    VaccinationRequest,
    MedicalRecordRequest,
)
from .auth import (
    RegisterRequest,
    LoginRequest,
    UpdateProfileRequest,
    ChangePasswordRequest,
    ForgotPasswordRequest,
)
from .notification import (
    SubscribeRequest,
    UnsubscribeRequest,
    SendNotificationRequest,
    SendToDeviceRequest,
    PingNotificationRequest,
)

__all__ = [
    "ApiResponse",
    "Coordinates",
    "FieldErrorDetail",
    "SensorType",
    "ReadingStatus",
    "Severity",
    "SensorStatusFilter",
    "SensorReadingRequest",
    "BatchReadingItem",
    "BatchReadingRequest",
    "RegisterSensorRequest",
    "UpdateSensorRequest",
    "BatteryUpdateRequest",
    "LiveStatus",
    "AlertType",
    "DeliveryStatus",
    "TimeRange",
    "TrendInterval",
    "DeviceSort",
    "DeviceAlertRequest",
    "ZoneType",
    "FarmLocation",
    "CreateFarmRequest",
    "UpdateFarmRequest",
    "CreateZoneRequest",
    "UpdateZoneRequest",
    "AnimalType",
    "HealthStatus",
    "BoundaryStatus",
    "Gender",
    "CreateLivestockRequest",
    "UpdateLivestockRequest",
    "VaccinationRequest",
    "MedicalRecordRequest",
    "RegisterRequest",
    "LoginRequest",
    "UpdateProfileRequest",
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "SubscribeRequest",
    "UnsubscribeRequest",
    "SendNotificationRequest",
    "SendToDeviceRequest",
    "PingNotificationRequest",
]
