"""Request/response bodies for the JSON API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    username: str = Field(..., max_length=64)
    password: str = Field(..., max_length=256)


class RefreshRequest(BaseModel):
    token: str = Field(..., max_length=1024)


class SessionTokenResponse(BaseModel):
    token: str
    session_id: str
    user_id: str
    expires_at: datetime


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issued_at: datetime
    expires_at: datetime
    revoked: bool
    rotated_from: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    current: bool = False


class RevokeAllResponse(BaseModel):
    revoked: int


class RegisterRequest(BaseModel):
    username: str = Field(..., max_length=64)
    password: str = Field(..., max_length=256)
    email: Optional[str] = Field(None, max_length=255)
    display_name: Optional[str] = Field(None, max_length=128)


class UserUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, max_length=64)
    password: Optional[str] = Field(None, max_length=256)
    email: Optional[str] = Field(None, max_length=255)
    display_name: Optional[str] = Field(None, max_length=128)
    role: Optional[str] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str
    created_at: datetime
    updated_at: datetime
