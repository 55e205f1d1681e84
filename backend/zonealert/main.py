r"""
ZoneAlert - Backend API
=======================
FastAPI application for livestock boundary monitoring.

ARCHITECTURE:
    LIDAR / ultrasonic sensor units on the fence line measure how close an
    animal is to the boundary and post readings here. Readings closer than
    the sensor's threshold become alerts and push notifications.

    [Sensor Units] --HTTPS + API key--> [This Backend] ---> [Firestore]
                                              |        \--> [Realtime DB]
                                              |         \-> [FCM push]
    [Dashboard / App] --Bearer token----------'

HOW TO RUN:
    # Install dependencies
    pip install -e ".[test]"

    # Copy environment config
    cp env.example .env
    # Edit .env (STORAGE_BACKEND=memory needs nothing else)

    # Run the server
    uvicorn zonealert.main:app --reload --port 8000 --app-dir backend

API DOCUMENTATION:
    After starting the server, visit:
    - Swagger UI: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc

Author: ZoneAlert Team
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zonealert import __version__
from zonealert.config import Config
from zonealert.errors import ErrorKind, STATUS_CODES, ZoneAlertError
from zonealert.models import FieldErrorDetail
from zonealert.routers import ALL_ROUTERS
from zonealert.services import ServiceContainer, build_container


logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    STARTUP:
        1. Build the storage backends and services (unless one was injected)
        2. Start the maintenance jobs (counter repair, daily reset)
        3. Print startup information

    SHUTDOWN:
        1. Stop the scheduler
        2. Close storage clients
    """
    # ========== STARTUP ==========
    print("=" * 60)
    print("ZONEALERT - Starting Backend")
    print("=" * 60)

    if getattr(app.state, "container", None) is None:
        app.state.container = build_container(Config)
    container: ServiceContainer = app.state.container
    container.scheduler.start()

    print(f"Storage backend: {Config.STORAGE_BACKEND}")
    print(f"Default boundary threshold: {Config.DEFAULT_BOUNDARY_THRESHOLD} cm")
    print(f"Alert topics: {Config.NOTIFICATION_TOPIC}_<farmer_id>")
    print(f"CORS origins: {len(Config.CORS_ORIGINS)} configured")
    print()
    print("API Documentation: http://localhost:8000/docs")
    print("=" * 60)

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    print()
    print("Shutting down...")
    await container.close()
    print("Shutdown complete")


# =============================================================================
# ERROR HANDLERS
# =============================================================================

async def handle_zonealert_error(request: Request, exc: ZoneAlertError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Pydantic errors become 400 with one {field, message} per problem."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        detail = FieldErrorDetail(field=".".join(location) or "body", message=error.get("msg", "Invalid value"))
        errors.append(detail.model_dump())
    return JSONResponse(
        status_code=STATUS_CODES[ErrorKind.VALIDATION],
        content={
            "success": False,
            "message": "Validation failed",
            "kind": ErrorKind.VALIDATION.value,
            "errors": errors,
        },
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


# =============================================================================
# CREATE FASTAPI APPLICATION
# =============================================================================

def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Pre-built services (tests pass an in-memory container);
                   built from Config in the lifespan when omitted
    """
    app = FastAPI(
        title="ZoneAlert API",
        description="""
## Overview

Backend for livestock boundary monitoring. Sensor units on the fence line
report distance readings; readings inside the boundary threshold raise
alerts and push notifications to the farmer.

## Authentication

- Dashboard and app endpoints: `Authorization: Bearer <token>`
- Device endpoints (readings, batch, battery, device alerts): `api_key` in
  the body or an `x-api-key` header
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ZoneAlertError, handle_zonealert_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)

    for router in ALL_ROUTERS:
        app.include_router(router)

    # =========================================================================
    # ROOT ENDPOINTS
    # =========================================================================

    @app.get("/", summary="API Information")
    async def root():
        return {
            "name": "ZoneAlert API",
            "version": __version__,
            "documentation": {"swagger": "/docs", "redoc": "/redoc"},
            "api": "/api",
        }

    @app.get("/health", summary="Health Check")
    async def health():
        return {
            "status": "healthy",
            "storage_backend": Config.STORAGE_BACKEND,
            "version": __version__,
        }

    @app.get("/api", summary="Endpoint Index")
    async def api_index():
        """Where each area of the API lives."""
        return {
            "success": True,
            "message": "ZoneAlert API",
            "data": {
                "auth": "/api/auth",
                "farmers": "/api/farmers",
                "farms": "/api/farms",
                "zones": "/api/zones",
                "livestock": "/api/livestock",
                "sensors": "/api/sensors",
                "alerts": "/api/alerts",
                "notifications": "/api/notifications",
                "analytics": "/api/analytics",
            },
        }

    return app


app = create_app()
