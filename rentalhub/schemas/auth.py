"""
RentalHub Backend — Auth & User Schemas
=========================================

What:  Request bodies for register/login/refresh/profile updates and the
       public user representation (never includes password_hash).
"""

import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{7,14}$")


def sanitize_phone(value: Optional[str]) -> Optional[str]:
    """
    Strips spaces, dashes, dots and parentheses, then keeps the number only
    if it looks like an international phone number. Unusable input becomes
    None instead of failing registration.
    """
    if not value:
        return None
    cleaned = re.sub(r"[\s\-().]", "", value)
    return cleaned if PHONE_PATTERN.match(cleaned) else None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    full_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, min_length=10, max_length=20)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("full_name cannot be blank")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """Body is optional; the refresh_token cookie is used when absent."""
    refresh_token: Optional[str] = None


class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    avatar_url: Optional[str] = Field(default=None, max_length=2048)


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str
    phone: Optional[str] = None
    role: str
    avatar_url: Optional[str] = None
    is_verified: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenPair(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenPair
