from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.constants import Role
from shared.models.pagination import PaginatedResponse


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    email: str
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None
    bio: str | None = None
    role: Role
    current_streak: int
    longest_streak: int
    total_points: int
    email_notifications: bool
    created_at: datetime


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    email: str
    name: str | None = None
    image_url: str | None = None
    role: Role
    created_at: datetime


class UpdateProfileRequest(BaseModel):
    """Self-service profile edit. Role and identity fields are not editable here."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    bio: str | None = Field(default=None, max_length=2000)
    image_url: str | None = Field(default=None, max_length=500)
    email_notifications: bool | None = None


class ChangeRoleRequest(BaseModel):
    role: Role


class UserListResponse(PaginatedResponse[UserSummary]):
    pass


class SyncResultResponse(BaseModel):
    total: int
    created: int
    updated: int
