"""
Device Key Check
================

IoT devices cannot hold a farmer's bearer token, so their writes carry an
API key instead (body field `api_key` or header `x-api-key`).

Two kinds of keys are accepted:
- the shared IOT_API_KEY from the environment (any sensor)
- a per-farmer `zk_...` key issued at registration, stored hashed in the
  api_keys collection (only that farmer's sensors)
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional

from zonealert.errors import AuthError, PermissionDeniedError
from zonealert.storage.base import DocumentStore, utcnow

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "zk_"


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_hex(32)


@dataclass
class DeviceIdentity:
    """Who a device key belongs to. farmer_id is None for the shared key."""
    key_id: Optional[str] = None
    farmer_id: Optional[str] = None

    def check_sensor(self, sensor: dict[str, Any]) -> None:
        """Raise PermissionDeniedError if the key may not write for this sensor."""
        if self.farmer_id is not None and sensor.get("farmer_id") != self.farmer_id:
            raise PermissionDeniedError("API key does not belong to this sensor's farmer")


class DeviceKeyVerifier:
    def __init__(self, store: DocumentStore, shared_key: str = ""):
        self.store = store
        self.shared_key = shared_key

    async def verify(self, provided: Optional[str]) -> DeviceIdentity:
        """
        Raises:
            AuthError: if the key is missing or unknown
        """
        if not provided:
            raise AuthError("API key required")

        if self.shared_key and secrets.compare_digest(provided.encode(), self.shared_key.encode()):
            return DeviceIdentity()

        if provided.startswith(API_KEY_PREFIX):
            matches = await self.store.query("api_keys", [
                ("key_hash", "==", hash_api_key(provided)),
                ("is_active", "==", True),
            ], limit=1)
            if matches:
                key = matches[0]
                await self.store.increment("api_keys", key.id, "usage_count", 1)
                await self.store.update("api_keys", key.id, {"last_used": utcnow()})
                return DeviceIdentity(key_id=key.id, farmer_id=key.data.get("farmer_id"))

        logger.warning("[device-keys] rejected an invalid API key")
        raise AuthError("Invalid API key")
