"""
Auth Service
============

Farmer accounts on top of the identity provider (Firebase Auth in
production).

WHAT IT DOES:
------------
1. register()   - identity user + farmers/{uid} document + a personal
                  `zk_` device API key (returned once, stored hashed)
2. login()      - password check, last_login, custom token for the client
3. profile      - me / update_profile (name is denormalized onto farms)
4. passwords    - change_password, forgot_password (reset link)
5. delete_account() - refused while the farmer still owns farms

Author: ZoneAlert Team
"""

import logging
from typing import Any

from zonealert.errors import ConflictError, NotFoundError, ValidationError, ZoneAlertError
from zonealert.models import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from zonealert.services.device_keys import generate_api_key, hash_api_key
from zonealert.storage.base import DocumentStore, IdentityProvider, new_document_id, utcnow

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, store: DocumentStore, identity: IdentityProvider):
        self.store = store
        self.identity = identity

    async def register(self, request: RegisterRequest) -> dict[str, Any]:
        email = request.email.lower()
        if await self.identity.get_user_by_email(email):
            raise ConflictError("User already exists with this email")

        user = await self.identity.create_user(email, request.password, request.name.strip())
        now = utcnow()
        farmer = {
            "name": request.name.strip(),
            "email": email,
            "phone": request.phone,
            "farms_count": 0,
            "created_at": now,
            "last_login": None,
        }
        api_key = generate_api_key()

        batch = self.store.batch()
        batch.create("farmers", user.uid, farmer)
        batch.create("api_keys", new_document_id(), {
            "farmer_id": user.uid,
            "key_hash": hash_api_key(api_key),
            "name": "default",
            "is_active": True,
            "usage_count": 0,
            "last_used": None,
            "created_at": now,
        })
        try:
            await batch.commit()
        except ZoneAlertError:
            # Don't leave an identity user without a farmer profile
            await self.identity.delete_user(user.uid)
            raise

        token = await self.identity.create_custom_token(user.uid)
        logger.info(f"[auth] registered farmer {user.uid}")
        return {
            "farmer_id": user.uid,
            "email": email,
            "name": farmer["name"],
            "token": token,
            "api_key": api_key,
        }

    async def login(self, request: LoginRequest) -> dict[str, Any]:
        result = await self.identity.sign_in_with_password(request.email.lower(), request.password)
        farmer = await self.store.get("farmers", result.uid)
        if farmer is None:
            raise NotFoundError("Farmer profile not found")

        await self.store.update("farmers", result.uid, {"last_login": utcnow()})
        token = await self.identity.create_custom_token(result.uid)
        return {
            "farmer_id": result.uid,
            "email": result.email,
            "name": farmer.data.get("name"),
            "token": token,
            "id_token": result.id_token,
            "refresh_token": result.refresh_token,
            "expires_in": result.expires_in,
        }

    async def verify_password(self, request: LoginRequest) -> dict[str, Any]:
        """Password sign-in only: returns the provider's tokens, nothing is written."""
        result = await self.identity.sign_in_with_password(request.email.lower(), request.password)
        return {
            "farmer_id": result.uid,
            "email": result.email,
            "id_token": result.id_token,
            "refresh_token": result.refresh_token,
            "expires_in": result.expires_in,
        }

    async def me(self, farmer_id: str) -> dict[str, Any]:
        farmer = await self.store.get("farmers", farmer_id)
        if farmer is None:
            raise NotFoundError("Farmer not found")
        return farmer.to_dict("farmer_id")

    async def update_profile(self, farmer_id: str, request: UpdateProfileRequest) -> dict[str, Any]:
        changes = request.model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        changes["updated_at"] = utcnow()

        batch = self.store.batch()
        batch.update("farmers", farmer_id, changes)
        if "name" in changes:
            # farmer_name is cached on every farm
            for farm in await self.store.query("farms", [("farmer_id", "==", farmer_id)]):
                batch.update("farms", farm.id, {"farmer_name": changes["name"]})
        await batch.commit()

        if "name" in changes:
            await self.identity.update_user(farmer_id, display_name=changes["name"])
        return await self.me(farmer_id)

    async def change_password(self, farmer_id: str, request: ChangePasswordRequest) -> None:
        await self.identity.update_user(farmer_id, password=request.new_password)
        logger.info(f"[auth] password changed for {farmer_id}")

    async def forgot_password(self, request: ForgotPasswordRequest) -> dict[str, Any]:
        link = await self.identity.password_reset_link(request.email.lower())
        return {"email": request.email.lower(), "reset_link": link}

    async def delete_account(self, farmer_id: str) -> None:
        farms = await self.store.count("farms", [("farmer_id", "==", farmer_id)])
        if farms:
            raise ConflictError(f"You still own {farms} farm(s); delete them first")

        batch = self.store.batch()
        batch.delete("farmers", farmer_id)
        for key in await self.store.query("api_keys", [("farmer_id", "==", farmer_id)]):
            batch.delete("api_keys", key.id)
        await batch.commit()

        await self.identity.delete_user(farmer_id)
        logger.info(f"[auth] account {farmer_id} deleted")
