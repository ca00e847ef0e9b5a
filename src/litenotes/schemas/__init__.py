"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .note import NoteResponse, NoteUpdateResponse, NoteWrite
from .user import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    ResetPasswordResponse,
)

__all__ = [
    "NoteResponse", "NoteUpdateResponse", "NoteWrite",
    "ForgotPasswordRequest", "LoginRequest", "LoginResponse", "MessageResponse",
    "RegisterRequest", "RegisterResponse", "ResetPasswordRequest", "ResetPasswordResponse",
]
