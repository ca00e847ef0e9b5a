# src/litenotes/api/v1/endpoints/auth.py
"""Authentication endpoints for the LiteNotes API."""

from __future__ import annotations

from fastapi import APIRouter, status

from litenotes.api.v1.dependencies import AccountServiceDep, CurrentUserDep
from litenotes.schemas.user import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/register",
    summary="Register a new account",
    status_code=status.HTTP_201_CREATED,
    response_model=RegisterResponse,
)
def register_user(payload: RegisterRequest, accounts: AccountServiceDep) -> RegisterResponse:
    """Create an account and its password-wrapped note encryption key."""
    user = accounts.register(payload.username, payload.password, payload.email)
    return RegisterResponse(user_id=user.id)


@router.post(
    "/login",
    summary="Authenticate with username and password",
    status_code=status.HTTP_200_OK,
    response_model=LoginResponse,
)
def login_user(payload: LoginRequest, accounts: AccountServiceDep) -> LoginResponse:
    """Issue a bearer token and unlock the caller's note encryption key."""
    result = accounts.login(payload.username, payload.password)
    return LoginResponse(token=result.access_token, expires_at=result.expires_at)


@router.post(
    "/logout",
    summary="End the encryption session",
    response_model=MessageResponse,
)
def logout_user(current_user: CurrentUserDep, accounts: AccountServiceDep) -> MessageResponse:
    """Evict the cached encryption key. The client discards its token."""
    accounts.logout(current_user.id)
    return MessageResponse(message="Logged out successfully")
