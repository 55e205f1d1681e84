"""
Auth API Router
===============

POST   /api/auth/register         - Create an account (returns a device API key once)
POST   /api/auth/login            - Sign in
POST   /api/auth/verify-password  - Check a password, returns provider tokens
GET    /api/auth/me               - Your profile
PUT    /api/auth/profile          - Update name / phone
POST   /api/auth/change-password  - Set a new password
POST   /api/auth/forgot-password  - Password reset link
DELETE /api/auth/account          - Delete your account (no farms left)
"""

from fastapi import APIRouter, Depends

from zonealert.dependencies import get_container, get_current_user
from zonealert.models import (
    ApiResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from zonealert.services import ServiceContainer


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=ApiResponse, status_code=201)
async def register(
    request: RegisterRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Create a farmer account.

    The response holds `api_key`, the key your sensors send with their
    readings. It is only shown here, so store it.
    """
    result = await container.auth.register(request)
    return ApiResponse(message="Account created", data=result)


@router.post("/login", response_model=ApiResponse)
async def login(
    request: LoginRequest,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.auth.login(request)
    return ApiResponse(message="Login successful", data=result)


@router.post("/verify-password", response_model=ApiResponse)
async def verify_password(
    request: LoginRequest,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.auth.verify_password(request)
    return ApiResponse(message="Password verified", data=result)


@router.get("/me", response_model=ApiResponse)
async def me(
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    profile = await container.auth.me(farmer["id"])
    return ApiResponse(message="Profile retrieved", data=profile)


@router.put("/profile", response_model=ApiResponse)
async def update_profile(
    request: UpdateProfileRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    profile = await container.auth.update_profile(farmer["id"], request)
    return ApiResponse(message="Profile updated", data=profile)


@router.post("/change-password", response_model=ApiResponse)
async def change_password(
    request: ChangePasswordRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    await container.auth.change_password(farmer["id"], request)
    return ApiResponse(message="Password changed")


@router.post("/forgot-password", response_model=ApiResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.auth.forgot_password(request)
    return ApiResponse(message="Password reset link generated", data=result)


@router.delete("/account", response_model=ApiResponse)
async def delete_account(
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Delete your account. Delete your farms first (409 otherwise)."""
    await container.auth.delete_account(farmer["id"])
    return ApiResponse(message="Account deleted")
