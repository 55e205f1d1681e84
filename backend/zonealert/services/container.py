"""
Service Container
=================

Builds every service once at startup and hands them to the routers through
app.state.container.

STORAGE_BACKEND=memory   -> in-process stores (local dev, tests)
STORAGE_BACKEND=firebase -> firebase-admin (Firestore, RTDB, FCM, Auth)
"""

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from zonealert.config import Config
from zonealert.services.alert_recorder import AlertRecorder
from zonealert.services.alerts import AlertService
from zonealert.services.analytics import AnalyticsService
from zonealert.services.auth import AuthService
from zonealert.services.counters import CounterMaintainer
from zonealert.services.device_keys import DeviceKeyVerifier
from zonealert.services.farms import FarmService
from zonealert.services.live_status import LiveStatusTracker
from zonealert.services.livestock import LivestockService
from zonealert.services.notifications import NotificationService
from zonealert.services.readings import ReadingService
from zonealert.services.scheduler import MaintenanceScheduler
from zonealert.services.sensors import SensorService
from zonealert.storage.base import DocumentStore, IdentityProvider, Messenger, RealtimeStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    store: DocumentStore
    realtime: RealtimeStore
    messenger: Messenger
    identity: IdentityProvider
    counters: CounterMaintainer
    live_status: LiveStatusTracker
    recorder: AlertRecorder
    device_keys: DeviceKeyVerifier
    farms: FarmService
    livestock: LivestockService
    sensors: SensorService
    readings: ReadingService
    alerts: AlertService
    notifications: NotificationService
    analytics: AnalyticsService
    auth: AuthService
    scheduler: MaintenanceScheduler

    async def close(self) -> None:
        self.scheduler.shutdown()
        for resource in (self.store, self.realtime, self.identity):
            await resource.close()


def wire_services(
    store: DocumentStore,
    realtime: RealtimeStore,
    messenger: Messenger,
    identity: IdentityProvider,
    config: type[Config] = Config,
    tz: Optional[tzinfo] = None,
) -> ServiceContainer:
    """Build the service graph on top of already created backends."""
    counters = CounterMaintainer(store)
    live_status = LiveStatusTracker(realtime, config.STALE_AFTER_MS)
    recorder = AlertRecorder(
        store,
        messenger,
        counters,
        topic=config.NOTIFICATION_TOPIC,
        cooldown_seconds=config.ALERT_COOLDOWN_SECONDS,
        critical_distance=config.CRITICAL_DISTANCE,
    )
    farms = FarmService(store, counters)
    livestock = LivestockService(store, counters, farms)
    sensors = SensorService(
        store,
        live_status,
        recorder,
        counters,
        farms,
        default_threshold=config.DEFAULT_BOUNDARY_THRESHOLD,
        low_battery_threshold=config.LOW_BATTERY_THRESHOLD,
    )
    readings = ReadingService(
        store,
        realtime,
        live_status,
        recorder,
        counters,
        sensors,
        livestock,
        default_threshold=config.DEFAULT_BOUNDARY_THRESHOLD,
        critical_distance=config.CRITICAL_DISTANCE,
    )

    return ServiceContainer(
        store=store,
        realtime=realtime,
        messenger=messenger,
        identity=identity,
        counters=counters,
        live_status=live_status,
        recorder=recorder,
        device_keys=DeviceKeyVerifier(store, config.IOT_API_KEY),
        farms=farms,
        livestock=livestock,
        sensors=sensors,
        readings=readings,
        alerts=AlertService(store, recorder, farms),
        notifications=NotificationService(store, messenger, config.NOTIFICATION_TOPIC),
        analytics=AnalyticsService(store, tz),
        auth=AuthService(store, identity),
        scheduler=MaintenanceScheduler(
            counters,
            reconcile_minutes=config.RECONCILE_INTERVAL_MINUTES,
            daily_reset_hour=config.DAILY_RESET_HOUR,
        ),
    )


def build_container(config: type[Config] = Config) -> ServiceContainer:
    """Create the configured backends and wire the services on top."""
    if config.STORAGE_BACKEND == "firebase":
        # Only imported when used so local dev doesn't need credentials
        from zonealert.storage.firebase import (
            FirebaseIdentityProvider,
            FirebaseMessenger,
            FirebaseRealtimeStore,
            FirestoreDocumentStore,
            initialize_firebase,
        )

        initialize_firebase(config.FIREBASE_CREDENTIALS_PATH, config.FIREBASE_DATABASE_URL)
        logger.info("Using Firebase storage backend")
        return wire_services(
            FirestoreDocumentStore(),
            FirebaseRealtimeStore(),
            FirebaseMessenger(),
            FirebaseIdentityProvider(config.FIREBASE_WEB_API_KEY),
            config,
        )

    from zonealert.storage.memory import (
        MemoryDocumentStore,
        MemoryIdentityProvider,
        MemoryMessenger,
        MemoryRealtimeStore,
    )

    logger.info("Using in-memory storage backend (data is lost on restart)")
    return wire_services(
        MemoryDocumentStore(),
        MemoryRealtimeStore(),
        MemoryMessenger(),
        MemoryIdentityProvider(),
        config,
    )
