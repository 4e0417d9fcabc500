"""api entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from projectdesk.application.services.auth_service import AuthService
from projectdesk.application.services.credential_service import CredentialService
from projectdesk.application.services.user_account_service import UserAccountService
from projectdesk.config.settings import Settings, load_settings
from projectdesk.infrastructure.db.admin_bootstrap import (
    AdminBootstrapConfig,
    AdminBootstrapConfigError,
    ensure_initial_admin_user,
    resolve_admin_bootstrap_config,
)
from projectdesk.infrastructure.db.auth_event_repository import SqlAlchemyAuthEventRepository
from projectdesk.infrastructure.db.session import create_session_factory
from projectdesk.infrastructure.db.user_repository import SqlAlchemyUserRepository
from projectdesk.infrastructure.http.auth_router import build_auth_router
from projectdesk.infrastructure.logging import configure_logging
from projectdesk.infrastructure.security.password_hasher import ScryptPasswordHasher

API_HOST = "0.0.0.0"
API_PORT = 8000
logger = logging.getLogger(__name__)


def build_credential_service(*, max_concurrency: int) -> CredentialService:
    """Build the off-loop scrypt credential service."""

    return CredentialService(
        password_hasher=ScryptPasswordHasher(),
        max_concurrency=max_concurrency,
    )


def create_app(
    *,
    database_url: str | None = None,
    credentials: CredentialService | None = None,
    upgrade_legacy_hashes: bool | None = None,
) -> FastAPI:
    """Create FastAPI app exposing credential endpoints."""

    settings: Settings | None = None
    owns_credentials = credentials is None
    if database_url is None or credentials is None or upgrade_legacy_hashes is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        if database_url is None:
            database_url = settings.database_url
        if credentials is None:
            credentials = build_credential_service(
                max_concurrency=settings.password_hash_max_concurrency,
            )
        if upgrade_legacy_hashes is None:
            upgrade_legacy_hashes = settings.legacy_password_upgrade_on_login

    bootstrap_config: AdminBootstrapConfig | None = None
    if settings is not None:
        try:
            bootstrap_config = resolve_admin_bootstrap_config(
                username=settings.bootstrap_admin_username,
                email=settings.bootstrap_admin_email,
                password=settings.bootstrap_admin_password,
                password_file=settings.bootstrap_admin_password_file,
            )
        except AdminBootstrapConfigError as exc:
            raise RuntimeError(f"invalid admin bootstrap configuration: {exc}") from exc

    assert database_url is not None
    assert credentials is not None
    assert upgrade_legacy_hashes is not None
    account_credentials = credentials

    session_factory = create_session_factory(database_url)
    users = SqlAlchemyUserRepository(session_factory)
    auth_events = SqlAlchemyAuthEventRepository(session_factory)
    auth_service = AuthService(
        users=users,
        auth_events=auth_events,
        credentials=credentials,
        upgrade_legacy_hashes=upgrade_legacy_hashes,
    )
    account_service = UserAccountService(
        users=users,
        auth_events=auth_events,
        credentials=credentials,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if bootstrap_config is not None:
            result = await ensure_initial_admin_user(
                session_factory=session_factory,
                credentials=account_credentials,
                config=bootstrap_config,
            )
            logger.info(
                "admin_bootstrap_result outcome=%s username=%s",
                result.outcome.value,
                result.username,
            )
        yield
        if owns_credentials:
            account_credentials.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.include_router(
        build_auth_router(
            auth_service=auth_service,
            account_service=account_service,
        )
    )
    return app


def run_asgi_server(*, host: str = API_HOST, port: int = API_PORT) -> None:
    """Run api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
