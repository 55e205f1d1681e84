"""
Routers Package
===============

Routers are like the reception desk - they direct incoming requests
to the right place. Every router is mounted under /api.
"""

from .alerts import router as alerts_router
from .analytics import router as analytics_router
from .auth import router as auth_router
from .farmers import router as farmers_router
from .farms import router as farms_router
from .livestock import router as livestock_router
from .notifications import router as notifications_router
from .sensors import router as sensors_router
from .zones import router as zones_router

ALL_ROUTERS = [
    auth_router,
    farmers_router,
    farms_router,
    zones_router,
    livestock_router,
    sensors_router,
    alerts_router,
    notifications_router,
    analytics_router,
]

__all__ = [
    "alerts_router",
    "analytics_router",
    "auth_router",
    "farmers_router",
    "farms_router",
    "livestock_router",
    "notifications_router",
    "sensors_router",
    "zones_router",
    "ALL_ROUTERS",
]
