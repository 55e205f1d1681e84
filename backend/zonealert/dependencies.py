"""
Router Dependencies
===================

Shared FastAPI dependencies.

- get_container: the ServiceContainer built at startup
- get_current_user: farmer behind the bearer token (dashboard and app)
- verify_device: identity behind a device API key (sensors)
"""

import logging
from typing import Any, Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from zonealert.errors import AuthError, DependencyError
from zonealert.services import DeviceIdentity, ServiceContainer

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    """Give endpoints access to the services created in the lifespan."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise DependencyError("Server not fully started yet")
    return container


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    """
    Resolve the bearer token to a farmer.

    Returns the farmer document as a dict with its uid under "id".
    Raises AuthError (401) if the token is missing or invalid, or if the
    account has no farmer profile.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Authorization token required")

    claims = await container.identity.verify_token(credentials.credentials)
    farmer = await container.store.get("farmers", claims["uid"])
    if farmer is None:
        raise AuthError("Farmer profile not found for this token")
    return farmer.to_dict("id")


def device_api_key(x_api_key: Optional[str] = Header(None, alias="x-api-key")) -> Optional[str]:
    """API key from the x-api-key header, if sent."""
    return x_api_key


async def verify_device(
    container: ServiceContainer, body_key: Optional[str], header_key: Optional[str]
) -> DeviceIdentity:
    """Check the key from the body (preferred) or header."""
    return await container.device_keys.verify(body_key or header_key)
