"""Account and authentication Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    """Schema for account registration."""

    username: str = Field(..., max_length=255, description="Unique login name (3+ characters)")
    password: str = Field(..., max_length=1024, description="Plaintext password (7+ characters)")
    email: EmailStr | None = Field(None, description="Optional address for password resets")


class RegisterResponse(BaseModel):
    """Registration acknowledgement."""

    message: str = Field("User created successfully")
    user_id: int

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    """Schema for login submissions."""

    username: str = Field(..., max_length=255)
    password: str = Field(..., max_length=1024)


class LoginResponse(BaseModel):
    """Response returned after successful login."""

    token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type")
    expires_at: datetime = Field(..., description="Expiry of both the token and the encryption session")


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class ForgotPasswordRequest(BaseModel):
    """Request a password reset email."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Complete a password reset."""

    token: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., alias="newPassword", max_length=1024)

    model_config = ConfigDict(populate_by_name=True)


class ResetPasswordResponse(BaseModel):
    """Password reset acknowledgement."""

    message: str = Field("Password has been reset successfully")
    data_key_rotated: bool = Field(
        ..., description="True if previously encrypted notes can no longer be decrypted"
    )
