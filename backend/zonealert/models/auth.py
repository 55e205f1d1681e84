"""
Auth Models
===========
Farmer account requests.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    """
    Example Request:
        POST /api/auth/register
        {"email": "ama@farm.gh", "password": "secret1", "name": "Ama Mensah"}
    """
    email: EmailStr
    password: str = Field(..., min_length=6, description="At least 6 characters")
    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class ChangePasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=6)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
