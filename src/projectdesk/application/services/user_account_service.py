"""Application service for account registration and password lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from projectdesk.application.ports.auth_event_repository_port import (
    AuthEventCreateInput,
    AuthEventRepositoryPort,
)
from projectdesk.application.ports.user_repository_port import (
    DuplicateUserError,
    UserCreateInput,
    UserRecord,
    UserRepositoryPort,
)
from projectdesk.application.services.credential_service import CredentialService
from projectdesk.domain.auth.credentials import (
    normalize_user_email,
    normalize_username,
    require_user_password,
)
from projectdesk.domain.auth.roles import Role


class UserNotFoundError(LookupError):
    """Raised when a target user cannot be found for one account action."""

    def __init__(self, *, user_id: UUID) -> None:
        super().__init__(f"user not found: {user_id}")
        self.user_id = user_id


class InvalidCredentialsError(PermissionError):
    """Raised when current credentials do not match; never says which part failed."""

    def __init__(self) -> None:
        super().__init__("invalid credentials")


@dataclass(frozen=True)
class UserRegistration:
    """Plaintext registration input, before normalization and hashing."""

    username: str
    email: str
    name: str
    password: str
    role: Role = Role.MEMBER


class UserAccountService:
    """Create accounts and rotate their stored password secrets."""

    def __init__(
        self,
        *,
        users: UserRepositoryPort,
        auth_events: AuthEventRepositoryPort,
        credentials: CredentialService,
    ) -> None:
        self._users = users
        self._auth_events = auth_events
        self._credentials = credentials

    async def register_user(self, registration: UserRegistration) -> UserRecord:
        """Create one user with a freshly salted password hash."""

        username = normalize_username(username=registration.username)
        email = normalize_user_email(email=registration.email)
        name = registration.name.strip()
        if not name:
            raise ValueError("name cannot be blank")
        password = require_user_password(password=registration.password)

        if await self._users.get_by_username(username=username) is not None:
            raise DuplicateUserError("username already registered")
        if await self._users.get_by_email(email=email) is not None:
            raise DuplicateUserError("email already registered")

        user = await self._users.create_user(
            UserCreateInput(
                username=username,
                email=email,
                name=name,
                password_hash=await self._credentials.hash_password(password),
                role=registration.role,
            )
        )
        await self._auth_events.append_event(
            AuthEventCreateInput(
                user_id=user.user_id,
                event_type="user_registered",
                payload={"username": user.username, "role": user.role.value},
            )
        )
        return user

    async def change_password(
        self,
        *,
        username: str,
        current_password: str,
        new_password: str,
    ) -> UserRecord:
        """Replace the password of a user who proves knowledge of the current one."""

        new_password = require_user_password(password=new_password)
        username = username.strip().lower()
        user = await self._users.get_by_username(username=username)
        if user is None:
            is_valid = await self._credentials.verify_decoy(current_password)
        else:
            is_valid = await self._credentials.verify_password(
                password=current_password,
                password_hash=user.password_hash,
            )
        if user is None or not is_valid or not user.is_active:
            await self._auth_events.append_event(
                AuthEventCreateInput(
                    user_id=user.user_id if user is not None else None,
                    event_type="password_change_failed",
                    payload={"username": username, "reason": "invalid_credentials"},
                )
            )
            raise InvalidCredentialsError()

        return await self._store_new_password(
            user=user,
            password=new_password,
            event_type="password_changed",
        )

    async def reset_password(self, *, user_id: UUID, new_password: str) -> UserRecord:
        """Administratively set a new password without checking the old one."""

        new_password = require_user_password(password=new_password)
        user = await self._users.get_by_id(user_id=user_id)
        if user is None:
            raise UserNotFoundError(user_id=user_id)

        return await self._store_new_password(
            user=user,
            password=new_password,
            event_type="password_reset",
        )

    async def _store_new_password(
        self,
        *,
        user: UserRecord,
        password: str,
        event_type: str,
    ) -> UserRecord:
        new_hash = await self._credentials.hash_password(password)
        updated = await self._users.update_password_hash(
            user_id=user.user_id,
            password_hash=new_hash,
        )
        if not updated:
            raise UserNotFoundError(user_id=user.user_id)

        await self._auth_events.append_event(
            AuthEventCreateInput(
                user_id=user.user_id,
                event_type=event_type,
                payload={"username": user.username},
            )
        )
        refreshed = await self._users.get_by_id(user_id=user.user_id)
        if refreshed is None:  # pragma: no cover - row was just updated.
            raise UserNotFoundError(user_id=user.user_id)
        return refreshed
