"""FastAPI router for login, registration, and password change endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status

from projectdesk.application.dto.auth_models import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    UserResponse,
)
from projectdesk.application.ports.user_repository_port import DuplicateUserError
from projectdesk.application.services.auth_service import AuthOutcome, AuthService
from projectdesk.application.services.user_account_service import (
    InvalidCredentialsError,
    UserAccountService,
    UserRegistration,
)

logger = logging.getLogger(__name__)

# One message for unknown user, wrong password, inactive or corrupt record.
INVALID_CREDENTIALS_DETAIL = "invalid credentials"


def build_auth_router(
    *,
    auth_service: AuthService,
    account_service: UserAccountService,
) -> APIRouter:
    """Build router exposing credential endpoints."""

    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/login", response_model=UserResponse)
    async def login(payload: LoginRequest, request: Request) -> UserResponse:
        result = await auth_service.authenticate(
            username=payload.username,
            password=payload.password,
            ip_address=request.client.host if request.client is not None else None,
            user_agent=request.headers.get("user-agent"),
        )
        logger.info("auth_login_result outcome=%s", result.outcome.value)

        if result.outcome is not AuthOutcome.SUCCESS or result.user is None:
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS_DETAIL)
        return UserResponse.from_record(result.user)

    @router.post(
        "/register",
        response_model=UserResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def register(payload: RegisterRequest) -> UserResponse:
        try:
            user = await account_service.register_user(
                UserRegistration(
                    username=payload.username,
                    email=payload.email,
                    name=payload.name,
                    password=payload.password,
                )
            )
        except DuplicateUserError as error:
            raise HTTPException(status_code=409, detail="user already exists") from error
        except ValueError as error:
            raise HTTPException(status_code=422, detail=str(error)) from error
        return UserResponse.from_record(user)

    @router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
    async def change_password(payload: ChangePasswordRequest) -> Response:
        try:
            await account_service.change_password(
                username=payload.username,
                current_password=payload.current_password,
                new_password=payload.new_password,
            )
        except InvalidCredentialsError as error:
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS_DETAIL) from error
        except ValueError as error:
            raise HTTPException(status_code=422, detail=str(error)) from error
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router
