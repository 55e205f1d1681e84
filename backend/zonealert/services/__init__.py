"""
Services Package
================

These are the "workers" that do the actual work.

- AlertRecorder: Turns breaches into alerts + notifications (with counters)
- CounterMaintainer: Keeps denormalized counts right, repairs drift
- LiveStatusTracker: Latest reading per sensor in the realtime store
- ReadingService / SensorService: Device-facing ingestion and sensor units
- FarmService / LivestockService: Farms, zones and animals
- AlertService / NotificationService / AnalyticsService: Dashboard side
- ServiceContainer: Wires all of the above at startup
"""

from .alert_recorder import AlertRecorder
from .alerts import AlertService
from .analytics import AnalyticsService
from .auth import AuthService
from .container import ServiceContainer, build_container, wire_services
from .counters import CounterMaintainer, EntityType
from .device_keys import DeviceIdentity, DeviceKeyVerifier
from .farms import FarmService
from .live_status import LiveStatusTracker
from .livestock import LivestockService
from .notifications import NotificationService
from .readings import ReadingService
from .scheduler import MaintenanceScheduler
from .sensors import SensorService
from .threshold import Evaluation, evaluate

__all__ = [
    "AlertRecorder",
    "AlertService",
    "AnalyticsService",
    "AuthService",
    "ServiceContainer",
    "build_container",
    "wire_services",
    "CounterMaintainer",
    "EntityType",
    "DeviceIdentity",
    "DeviceKeyVerifier",
    "FarmService",
    "LiveStatusTracker",
    "LivestockService",
    "NotificationService",
    "ReadingService",
    "MaintenanceScheduler",
    "SensorService",
    "Evaluation",
    "evaluate",
]
