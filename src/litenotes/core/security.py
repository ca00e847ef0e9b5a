"""Password hashing and bearer token helpers.

The login password hash (bcrypt) and the note-encryption key derivation
(``litenotes.services.kdf``) are two independent secrets derived from the same
password. Nothing here touches encryption key material.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from litenotes.core.errors import AuthenticationError
from litenotes.core.settings import settings

BCRYPT_ROUNDS = 10
BCRYPT_MAX_PASSWORD_BYTES = 72


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a verified access token."""

    user_id: int
    username: str
    expires_at: datetime


def _password_bytes(password: str) -> bytes:
    # bcrypt only considers the first 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(password: str) -> str:
    """Return a salted bcrypt hash suitable for storage."""
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Return True if ``password`` matches the stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def hash_reset_token(token: str) -> str:
    """Return the SHA-256 digest under which a reset token is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_access_token(user_id: int, username: str) -> tuple[str, datetime]:
    """Create a JWT access token for an authenticated user.

    Returns:
        Tuple of (encoded token, expiry timestamp)
    """
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode: dict[str, object] = {
        "sub": str(user_id),
        "username": username,
        "exp": expire,
    }
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt, expire


def decode_access_token(token: str) -> TokenClaims:
    """Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: If the token is malformed, forged, or expired
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise AuthenticationError("Invalid or expired token") from err

    subject = payload.get("sub")
    username = payload.get("username")
    exp = payload.get("exp")
    if subject is None or username is None or exp is None:
        raise AuthenticationError("Invalid or expired token")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as err:
        raise AuthenticationError("Invalid or expired token") from err

    return TokenClaims(
        user_id=user_id,
        username=str(username),
        expires_at=datetime.fromtimestamp(int(exp), UTC),
    )
