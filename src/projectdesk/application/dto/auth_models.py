"""Pydantic models for login and account HTTP contracts."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from projectdesk.application.ports.user_repository_port import UserRecord


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class LoginRequest(StrictModel):
    """HTTP request model for username/password login."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterRequest(StrictModel):
    """HTTP request model for self-service account registration."""

    username: str = Field(min_length=1)
    email: str = Field(min_length=3)
    name: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ChangePasswordRequest(StrictModel):
    """HTTP request model for password change with current-password proof."""

    username: str = Field(min_length=1)
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class UserResponse(StrictModel):
    """Public user projection; never carries the stored password secret."""

    id: UUID
    username: str
    email: str
    name: str
    role: str
    created_at: datetime

    @classmethod
    def from_record(cls, user: UserRecord) -> UserResponse:
        return cls(
            id=user.user_id,
            username=user.username,
            email=user.email,
            name=user.name,
            role=user.role.value,
            created_at=user.created_at,
        )
