"""Application authentication service for credential verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import StrEnum

from projectdesk.application.ports.auth_event_repository_port import (
    AuthEventCreateInput,
    AuthEventRepositoryPort,
)
from projectdesk.application.ports.user_repository_port import UserRecord, UserRepositoryPort
from projectdesk.application.services.credential_service import CredentialService

logger = logging.getLogger(__name__)


class AuthOutcome(StrEnum):
    """Supported authentication outcomes."""

    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    INACTIVE_USER = "inactive_user"


@dataclass(frozen=True)
class AuthResult:
    """Authentication result model."""

    outcome: AuthOutcome
    user: UserRecord | None = None


class AuthService:
    """Authenticate credentials and append auth audit events."""

    def __init__(
        self,
        *,
        users: UserRepositoryPort,
        auth_events: AuthEventRepositoryPort,
        credentials: CredentialService,
        upgrade_legacy_hashes: bool = True,
    ) -> None:
        self._users = users
        self._auth_events = auth_events
        self._credentials = credentials
        self._upgrade_legacy_hashes = upgrade_legacy_hashes

    async def authenticate(
        self,
        *,
        username: str,
        password: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> AuthResult:
        """Authenticate user credentials and always emit auth event."""

        username = username.strip().lower()
        user = await self._users.get_by_username(username=username)
        if user is None:
            # Pay the KDF cost anyway so response time does not reveal unknown usernames.
            await self._credentials.verify_decoy(password)
            await self._auth_events.append_event(
                AuthEventCreateInput(
                    user_id=None,
                    event_type="login_failed",
                    ip_address=ip_address,
                    user_agent=user_agent,
                    payload={"username": username, "reason": "invalid_credentials"},
                )
            )
            return AuthResult(outcome=AuthOutcome.INVALID_CREDENTIALS, user=None)

        is_valid = await self._credentials.verify_password(
            password=password,
            password_hash=user.password_hash,
        )
        if not is_valid:
            await self._auth_events.append_event(
                AuthEventCreateInput(
                    user_id=user.user_id,
                    event_type="login_failed",
                    ip_address=ip_address,
                    user_agent=user_agent,
                    payload={"username": username, "reason": "invalid_credentials"},
                )
            )
            return AuthResult(outcome=AuthOutcome.INVALID_CREDENTIALS, user=None)

        if not user.is_active:
            await self._auth_events.append_event(
                AuthEventCreateInput(
                    user_id=user.user_id,
                    event_type="login_blocked_inactive",
                    ip_address=ip_address,
                    user_agent=user_agent,
                    payload={"username": username},
                )
            )
            return AuthResult(outcome=AuthOutcome.INACTIVE_USER, user=None)

        if self._credentials.needs_rehash(user.password_hash):
            user = await self._handle_legacy_credential(
                user=user,
                password=password,
                ip_address=ip_address,
                user_agent=user_agent,
            )

        await self._auth_events.append_event(
            AuthEventCreateInput(
                user_id=user.user_id,
                event_type="login_success",
                ip_address=ip_address,
                user_agent=user_agent,
                payload={"username": username, "role": user.role.value},
            )
        )
        return AuthResult(outcome=AuthOutcome.SUCCESS, user=user)

    async def _handle_legacy_credential(
        self,
        *,
        user: UserRecord,
        password: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> UserRecord:
        """Flag a legacy unsalted login and optionally migrate it to a salted hash."""

        logger.warning("legacy_credential_login user_id=%s", user.user_id)
        await self._auth_events.append_event(
            AuthEventCreateInput(
                user_id=user.user_id,
                event_type="legacy_credential_login",
                ip_address=ip_address,
                user_agent=user_agent,
                payload={"username": user.username},
            )
        )
        if not self._upgrade_legacy_hashes:
            return user

        new_hash = await self._credentials.hash_password(password)
        updated = await self._users.update_password_hash(
            user_id=user.user_id,
            password_hash=new_hash,
        )
        if not updated:
            return user

        logger.info("password_hash_upgraded user_id=%s", user.user_id)
        await self._auth_events.append_event(
            AuthEventCreateInput(
                user_id=user.user_id,
                event_type="password_hash_upgraded",
                ip_address=ip_address,
                user_agent=user_agent,
                payload={"username": user.username},
            )
        )
        return replace(user, password_hash=new_hash)
