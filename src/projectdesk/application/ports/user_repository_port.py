"""Port for user persistence operations used by credential services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from projectdesk.domain.auth.roles import Role


class DuplicateUserError(ValueError):
    """Raised when username or email is already taken."""


@dataclass(frozen=True)
class UserRecord:
    """User persistence model."""

    user_id: UUID
    username: str
    email: str
    name: str
    password_hash: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserCreateInput:
    """Insert payload for one user row; `password_hash` is already hashed."""

    username: str
    email: str
    name: str
    password_hash: str
    role: Role = Role.MEMBER
    is_active: bool = True


class UserRepositoryPort(Protocol):
    """User repository contract."""

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id, including inactive users."""

    async def get_by_username(self, *, username: str) -> UserRecord | None:
        """Return user by normalized username, including inactive users."""

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        """Return user by normalized email, including inactive users."""

    async def create_user(self, payload: UserCreateInput) -> UserRecord:
        """Persist one user and return the stored row."""

    async def update_password_hash(self, *, user_id: UUID, password_hash: str) -> bool:
        """Replace stored password hash, returning False when user is missing."""