"""SQLAlchemy adapter for user lookup and credential persistence."""

from __future__ import annotations

from datetime import datetime
from typing import cast
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from projectdesk.application.ports.user_repository_port import (
    DuplicateUserError,
    UserCreateInput,
    UserRecord,
    UserRepositoryPort,
)
from projectdesk.domain.auth.roles import Role
from projectdesk.infrastructure.db.metadata import users

_USER_COLUMNS = (
    users.c.id,
    users.c.username,
    users.c.email,
    users.c.name,
    users.c.password_hash,
    users.c.role,
    users.c.is_active,
    users.c.created_at,
    users.c.updated_at,
)


class SqlAlchemyUserRepository(UserRepositoryPort):
    """User repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id, including inactive users."""

        return await self._fetch_one(users.c.id == user_id)

    async def get_by_username(self, *, username: str) -> UserRecord | None:
        """Return user by normalized username, including inactive users."""

        return await self._fetch_one(users.c.username == username)

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        """Return user by normalized email, including inactive users."""

        return await self._fetch_one(users.c.email == email)

    async def create_user(self, payload: UserCreateInput) -> UserRecord:
        """Insert one user row and return it; unique violations become DuplicateUserError."""

        user_id = uuid4()
        statement = sa.insert(users).values(
            id=user_id,
            username=payload.username,
            email=payload.email,
            name=payload.name,
            password_hash=payload.password_hash,
            role=payload.role.value,
            is_active=payload.is_active,
        )

        async with self._session_factory() as session:
            try:
                await session.execute(statement)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateUserError("username or email already registered") from exc

        created = await self.get_by_id(user_id=user_id)
        if created is None:  # pragma: no cover - row was just committed.
            raise LookupError(f"user not found after insert: {user_id}")
        return created

    async def update_password_hash(self, *, user_id: UUID, password_hash: str) -> bool:
        """Replace stored password hash and bump `updated_at`."""

        statement = (
            sa.update(users)
            .where(users.c.id == user_id)
            .values(password_hash=password_hash, updated_at=sa.func.current_timestamp())
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        return result.rowcount > 0

    async def _fetch_one(self, condition: sa.ColumnElement[bool]) -> UserRecord | None:
        statement = sa.select(*_USER_COLUMNS).where(condition).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_user_record(row)


def _to_user_record(row: sa.RowMapping) -> UserRecord:
    raw_user_id = row["id"]
    user_id = raw_user_id if isinstance(raw_user_id, UUID) else UUID(str(raw_user_id))
    return UserRecord(
        user_id=user_id,
        username=cast(str, row["username"]),
        email=cast(str, row["email"]),
        name=cast(str, row["name"]),
        password_hash=cast(str, row["password_hash"]),
        role=Role(cast(str, row["role"])),
        is_active=bool(row["is_active"]),
        created_at=cast(datetime, row["created_at"]),
        updated_at=cast(datetime, row["updated_at"]),
    )
