"""
Configuration
=============

Application configuration loaded from environment variables.
A `.env` file next to the backend is loaded first (python-dotenv), so local
development only needs `cp env.example .env`.

Environment Variables:
    STORAGE_BACKEND: "memory" (default, local dev) or "firebase"
    FIREBASE_CREDENTIALS_PATH: Service account JSON for firebase-admin
    FIREBASE_DATABASE_URL: Realtime Database URL (live status + readings)
    FIREBASE_WEB_API_KEY: Web API key used for password sign-in
    IOT_API_KEY: Shared secret sensors send with every write
    DEFAULT_BOUNDARY_THRESHOLD: Breach threshold for new sensors (default: 50)
    CRITICAL_DISTANCE: Distances below this are critical breaches (default: 25)
    LOW_BATTERY_THRESHOLD: Battery % that raises a low battery alert (default: 20)
    STALE_AFTER_MS: Age after which a sensor's live status is stale (default: 300000)
    ALERT_COOLDOWN_SECONDS: Per-sensor breach cooldown, 0 disables (default: 0)
    NOTIFICATION_TOPIC: Prefix of the per-farmer breach alert topics (default: livestock_alerts)
    RECONCILE_INTERVAL_MINUTES: Counter repair job interval, 0 disables (default: 60)
    DAILY_RESET_HOUR: Local hour when daily sensor counters reset (default: 0)
    FRONTEND_URL: URL of the dashboard for CORS
    LOG_LEVEL: Logging level (default: INFO)
"""

import os

from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Defaults are set for local development with the in-memory backend.
    """

    # Storage backend: "memory" or "firebase"
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory").lower()

    # Firebase project settings
    FIREBASE_CREDENTIALS_PATH = os.getenv(
        "FIREBASE_CREDENTIALS_PATH",
        "config/serviceAccountKey.json"
    )
    FIREBASE_DATABASE_URL = os.getenv("FIREBASE_DATABASE_URL", "")
    FIREBASE_WEB_API_KEY = os.getenv("FIREBASE_WEB_API_KEY", "")

    # Shared secret for IoT devices
    # Default: development key, override in production!
    IOT_API_KEY = os.getenv("IOT_API_KEY", "dev-iot-api-key")

    # Boundary rules
    DEFAULT_BOUNDARY_THRESHOLD = float(os.getenv("DEFAULT_BOUNDARY_THRESHOLD", "50"))
    CRITICAL_DISTANCE = float(os.getenv("CRITICAL_DISTANCE", "25"))
    LOW_BATTERY_THRESHOLD = float(os.getenv("LOW_BATTERY_THRESHOLD", "20"))
    STALE_AFTER_MS = int(os.getenv("STALE_AFTER_MS", "300000"))
    ALERT_COOLDOWN_SECONDS = int(os.getenv("ALERT_COOLDOWN_SECONDS", "0"))

    # Push notifications
    NOTIFICATION_TOPIC = os.getenv("NOTIFICATION_TOPIC", "livestock_alerts")

    # Maintenance jobs
    RECONCILE_INTERVAL_MINUTES = int(os.getenv("RECONCILE_INTERVAL_MINUTES", "60"))
    DAILY_RESET_HOUR = int(os.getenv("DAILY_RESET_HOUR", "0"))

    # Frontend URL for CORS
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Allowed CORS origins
    CORS_ORIGINS = [
        FRONTEND_URL,
        "http://localhost:5173",    # Vite dev server
        "http://localhost:3000",    # Create React App
        "http://localhost:8080",    # Android emulator web view
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
