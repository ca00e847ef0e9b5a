# src/litenotes/api/v1/endpoints/password.py
"""Forgotten-password endpoints for the LiteNotes API."""

from __future__ import annotations

from fastapi import APIRouter

from litenotes.api.v1.dependencies import AccountServiceDep
from litenotes.schemas.user import (
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    ResetPasswordResponse,
)

router = APIRouter(prefix="/password", tags=["password"])

GENERIC_RESET_ACK = "If an account with that email exists, a reset link will be sent."


@router.post("/forgot", response_model=MessageResponse)
def forgot_password(payload: ForgotPasswordRequest, accounts: AccountServiceDep) -> MessageResponse:
    """Send a reset link; the response never reveals whether the email is registered."""
    accounts.request_password_reset(payload.email)
    return MessageResponse(message=GENERIC_RESET_ACK)


@router.post("/reset", response_model=ResetPasswordResponse)
def reset_password(payload: ResetPasswordRequest, accounts: AccountServiceDep) -> ResetPasswordResponse:
    """Set a new password with a single-use token."""
    result = accounts.reset_password(payload.token, payload.new_password)
    return ResetPasswordResponse(data_key_rotated=result.data_key_rotated)
