from __future__ import annotations

from pathlib import Path
from uuid import UUID, uuid4

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command
from projectdesk.application.ports.auth_event_repository_port import AuthEventCreateInput
from projectdesk.application.ports.user_repository_port import (
    DuplicateUserError,
    UserCreateInput,
)
from projectdesk.domain.auth.roles import Role
from projectdesk.infrastructure.db.auth_event_repository import SqlAlchemyAuthEventRepository
from projectdesk.infrastructure.db.session import create_session_factory
from projectdesk.infrastructure.db.user_repository import SqlAlchemyUserRepository


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _count_users(sync_url: str) -> int:
    with sa.create_engine(sync_url).connect() as connection:
        return int(connection.execute(sa.text("SELECT COUNT(*) FROM users")).scalar_one())


def _insert_user(
    connection: sa.Connection,
    *,
    user_id: UUID,
    username: str,
    email: str,
    role: str = "member",
    is_active: bool = True,
    password_hash: str = "hash",
) -> None:
    connection.execute(
        sa.text(
            "INSERT INTO users (id, username, email, name, password_hash, role, is_active) "
            "VALUES (:id, :username, :email, :name, :password_hash, :role, :is_active)"
        ),
        {
            "id": user_id.hex,
            "username": username,
            "email": email,
            "name": username.title(),
            "password_hash": password_hash,
            "role": role,
            "is_active": is_active,
        },
    )


def test_role_enum_values_are_exact_admin_manager_member() -> None:
    assert {member.value for member in Role} == {"admin", "manager", "member"}


@pytest.mark.asyncio
async def test_user_repository_fetches_by_username_email_and_id(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "user_repo_lookup.db")
    repo = SqlAlchemyUserRepository(create_session_factory(async_url))

    user_id = uuid4()
    with sa.create_engine(sync_url).begin() as connection:
        _insert_user(
            connection,
            user_id=user_id,
            username="ana",
            email="ana@example.org",
            role="manager",
            is_active=False,
        )

    by_username = await repo.get_by_username(username="ana")
    by_email = await repo.get_by_email(email="ana@example.org")
    by_id = await repo.get_by_id(user_id=user_id)

    assert by_username is not None
    assert by_username.user_id == user_id
    assert by_username.role is Role.MANAGER
    assert by_username.is_active is False
    assert by_username.name == "Ana"
    assert by_email == by_username
    assert by_id == by_username
    assert await repo.get_by_username(username="missing") is None
    assert _count_users(sync_url) == 1


@pytest.mark.asyncio
async def test_user_repository_creates_user_and_rejects_duplicates(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "user_repo_create.db")
    repo = SqlAlchemyUserRepository(create_session_factory(async_url))

    created = await repo.create_user(
        UserCreateInput(
            username="bruno",
            email="bruno@example.org",
            name="Bruno Lima",
            password_hash="aa.bb",
        )
    )

    assert created.username == "bruno"
    assert created.role is Role.MEMBER
    assert created.is_active is True
    assert created.password_hash == "aa.bb"

    with pytest.raises(DuplicateUserError):
        await repo.create_user(
            UserCreateInput(
                username="bruno",
                email="other@example.org",
                name="Other",
                password_hash="cc.dd",
            )
        )
    with pytest.raises(DuplicateUserError):
        await repo.create_user(
            UserCreateInput(
                username="other",
                email="bruno@example.org",
                name="Other",
                password_hash="cc.dd",
            )
        )

    assert _count_users(sync_url) == 1


@pytest.mark.asyncio
async def test_user_repository_updates_password_hash(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "user_repo_update.db")
    repo = SqlAlchemyUserRepository(create_session_factory(async_url))

    user_id = uuid4()
    with sa.create_engine(sync_url).begin() as connection:
        _insert_user(connection, user_id=user_id, username="carla", email="carla@example.org")

    updated = await repo.update_password_hash(user_id=user_id, password_hash="new.hash")
    missing = await repo.update_password_hash(user_id=uuid4(), password_hash="new.hash")

    assert updated is True
    assert missing is False
    user = await repo.get_by_id(user_id=user_id)
    assert user is not None
    assert user.password_hash == "new.hash"


@pytest.mark.asyncio
async def test_auth_event_repository_appends_events(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "auth_event_repo.db")
    session_factory = create_session_factory(async_url)
    auth_event_repo = SqlAlchemyAuthEventRepository(session_factory)

    user_id = uuid4()
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        _insert_user(connection, user_id=user_id, username="dora", email="dora@example.org")

    first_id = await auth_event_repo.append_event(
        AuthEventCreateInput(
            user_id=user_id,
            event_type="login_success",
            ip_address="127.0.0.1",
            user_agent="pytest",
            payload={"username": "dora"},
        )
    )
    second_id = await auth_event_repo.append_event(
        AuthEventCreateInput(
            user_id=None,
            event_type="login_failed",
            payload={"username": "ghost", "reason": "invalid_credentials"},
        )
    )

    assert second_id > first_id
    with engine.begin() as connection:
        rows = connection.execute(
            sa.text("SELECT event_type, user_id, ip_address FROM auth_events ORDER BY id")
        ).mappings().all()

    assert [row["event_type"] for row in rows] == ["login_success", "login_failed"]
    assert UUID(str(rows[0]["user_id"])) == user_id
    assert rows[0]["ip_address"] == "127.0.0.1"
    assert rows[1]["user_id"] is None
