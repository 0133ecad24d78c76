"""Pydantic schemas for user API endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserRegisterRequest(BaseModel):
    """Request schema for user registration."""

    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None


class UserLoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Response schema for user data."""

    id: str
    email: str
    full_name: Optional[str]
    created_at: datetime


class UserLoginResponse(BaseModel):
    """Response schema for user login and registration."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserProfileResponse(BaseModel):
    """Response schema for the signed-in user with access state."""

    id: str
    email: str
    full_name: Optional[str]
    has_active_access: bool
    access_status: str
    created_at: datetime
