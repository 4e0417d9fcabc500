from __future__ import annotations

from pathlib import Path
from uuid import uuid4

import pytest
import sqlalchemy as sa
from alembic.config import Config
from fastapi.testclient import TestClient

from alembic import command
from apps.api.main import create_app
from projectdesk.config.settings import load_settings
from projectdesk.infrastructure.security.password_hasher import ScryptPasswordHasher

_BOOTSTRAP_ENV = (
    "BOOTSTRAP_ADMIN_USERNAME",
    "BOOTSTRAP_ADMIN_EMAIL",
    "BOOTSTRAP_ADMIN_PASSWORD",
    "BOOTSTRAP_ADMIN_PASSWORD_FILE",
)


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")
    return sync_url, async_url


def _set_runtime_env(monkeypatch: pytest.MonkeyPatch, *, database_url: str) -> None:
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("PASSWORD_HASH_MAX_CONCURRENCY", "2")
    for key in _BOOTSTRAP_ENV:
        monkeypatch.delenv(key, raising=False)


def _insert_user(connection: sa.Connection, *, username: str) -> None:
    connection.execute(
        sa.text(
            "INSERT INTO users (id, username, email, name, password_hash, role, is_active) "
            "VALUES (:id, :username, :email, :name, :password_hash, 'member', 1)"
        ),
        {
            "id": uuid4().hex,
            "username": username,
            "email": f"{username}@example.org",
            "name": username.title(),
            "password_hash": ScryptPasswordHasher().hash_password("existing-password"),
        },
    )


def _create_runtime_test_client() -> TestClient:
    load_settings.cache_clear()
    return TestClient(create_app())


@pytest.mark.asyncio
async def test_startup_bootstrap_creates_first_admin_from_env_password(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "admin_bootstrap_env_password.db")
    _set_runtime_env(monkeypatch, database_url=async_url)
    monkeypatch.setenv("BOOTSTRAP_ADMIN_EMAIL", "owner@example.org")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD", "bootstrap-password")

    try:
        with _create_runtime_test_client() as client:
            response = client.post(
                "/api/auth/login",
                json={"username": "owner", "password": "bootstrap-password"},
            )
    finally:
        load_settings.cache_clear()

    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    with sa.create_engine(sync_url).begin() as connection:
        row = connection.execute(
            sa.text("SELECT username, email, role, password_hash FROM users LIMIT 1")
        ).mappings().one()
        count = connection.execute(sa.text("SELECT COUNT(*) FROM users")).scalar_one()

    assert row["username"] == "owner"
    assert row["email"] == "owner@example.org"
    assert row["role"] == "admin"
    assert row["password_hash"] != "bootstrap-password"
    assert int(count) == 1


@pytest.mark.asyncio
async def test_startup_bootstrap_reads_admin_password_from_file(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _, async_url = _upgrade_head(tmp_path, "admin_bootstrap_password_file.db")
    password_file = tmp_path / "bootstrap-password.txt"
    password_file.write_text("bootstrap-from-file\n", encoding="utf-8")
    _set_runtime_env(monkeypatch, database_url=async_url)
    monkeypatch.setenv("BOOTSTRAP_ADMIN_USERNAME", "root")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_EMAIL", "file-admin@example.org")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD_FILE", str(password_file))

    try:
        with _create_runtime_test_client() as client:
            response = client.post(
                "/api/auth/login",
                json={"username": "root", "password": "bootstrap-from-file"},
            )
    finally:
        load_settings.cache_clear()

    assert response.status_code == 200
    assert response.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_startup_bootstrap_does_not_create_admin_when_users_exist(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "admin_bootstrap_existing_user.db")
    _set_runtime_env(monkeypatch, database_url=async_url)
    monkeypatch.setenv("BOOTSTRAP_ADMIN_EMAIL", "owner@example.org")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD", "bootstrap-password")

    with sa.create_engine(sync_url).begin() as connection:
        _insert_user(connection, username="existing")

    try:
        with _create_runtime_test_client() as client:
            response = client.post(
                "/api/auth/login",
                json={"username": "owner", "password": "bootstrap-password"},
            )
    finally:
        load_settings.cache_clear()

    assert response.status_code == 401
    assert response.json() == {"detail": "invalid credentials"}

    with sa.create_engine(sync_url).begin() as connection:
        count = connection.execute(sa.text("SELECT COUNT(*) FROM users")).scalar_one()

    assert int(count) == 1


@pytest.mark.asyncio
async def test_startup_bootstrap_rejects_invalid_password_source_configuration(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _, async_url = _upgrade_head(tmp_path, "admin_bootstrap_invalid_config.db")
    password_file = tmp_path / "bootstrap-password.txt"
    password_file.write_text("bootstrap-from-file\n", encoding="utf-8")
    _set_runtime_env(monkeypatch, database_url=async_url)
    monkeypatch.setenv("BOOTSTRAP_ADMIN_EMAIL", "invalid-config@example.org")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD", "bootstrap-password")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD_FILE", str(password_file))

    load_settings.cache_clear()
    try:
        with pytest.raises(
            RuntimeError,
            match="invalid admin bootstrap configuration",
        ):
            create_app()
    finally:
        load_settings.cache_clear()
