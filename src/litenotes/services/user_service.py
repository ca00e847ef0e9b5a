"""Account lifecycle: registration, login, logout and password reset.

Two independent secrets come from one password: the bcrypt hash checked at
login, and the KEK that unwraps the user's data key. A matching hash with a
failing unwrap is treated as corrupted key material, never as bad credentials.
"""
from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from email_validator import EmailNotValidError
from email_validator import validate_email as check_email_address
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from litenotes.core import security
from litenotes.core.errors import (
    AuthenticationError,
    ConflictError,
    DecryptionError,
    InvalidResetTokenError,
    KeyAccessError,
    MailDeliveryError,
    StorageError,
    ValidationError,
)
from litenotes.core.settings import settings
from litenotes.db.time import as_utc, utcnow
from litenotes.models import Note, PasswordReset, User
from litenotes.services import keyring
from litenotes.services.envelope import EnvelopeCipher
from litenotes.services.key_cache import KeyCache
from litenotes.services.mailer import MailSender, render_reset_mail
from litenotes.services.rate_limit import LoginRateLimiter

__all__ = [
    "AccountService",
    "LoginResult",
    "PasswordResetResult",
    "normalize_username",
    "validate_email",
]

logger = logging.getLogger(__name__)

RESET_TOKEN_BYTES = 32

# Compared against when the username is unknown so both paths pay one bcrypt check.
_DUMMY_PASSWORD_HASH = security.hash_password("litenotes-timing-equalizer")


@dataclass(frozen=True)
class LoginResult:
    """Issued bearer token for a successful login."""

    access_token: str
    expires_at: datetime
    user_id: int
    username: str


@dataclass(frozen=True)
class PasswordResetResult:
    """Outcome of a completed password reset.

    ``data_key_rotated`` is True when the previous data key was not recoverable
    and a new one had to be generated; notes sealed under the old key can no
    longer be opened.
    """

    user_id: int
    data_key_rotated: bool


def validate_email(email: str) -> str:
    """Return the normalized form of ``email``, or raise ``ValidationError`` if malformed."""
    try:
        checked = check_email_address(email.strip(), check_deliverability=False)
    except EmailNotValidError as err:
        raise ValidationError("Invalid email format") from err
    return checked.normalized


def normalize_username(username: str | None) -> str:
    """Return the canonical form under which a username is stored and throttled."""
    return (username or "").strip()


def _validate_password(password: str) -> None:
    if not password or len(password) < settings.password_min_length:
        raise ValidationError(
            f"Password must be at least {settings.password_min_length} characters long"
        )


class AccountService:
    """Account operations over a SQLAlchemy session and the shared key cache."""

    def __init__(
        self,
        db: Session,
        key_cache: KeyCache,
        rate_limiter: LoginRateLimiter,
        mail_sender: MailSender,
        *,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.key_cache = key_cache
        self.rate_limiter = rate_limiter
        self.mail_sender = mail_sender
        self._now = now

    # --- helpers -----------------------------------------------------------------
    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("Database error during %s", action, exc_info=True)
            raise StorageError() from err

    def _get_by_username(self, username: str) -> User | None:
        return self.db.scalar(select(User).where(User.username == username))

    def _get_by_email(self, email: str) -> User | None:
        return self.db.scalar(select(User).where(User.email == email))

    def _conflicting_field(self, username: str, email: str | None) -> str | None:
        if self._get_by_username(username) is not None:
            return "username"
        if email is not None and self._get_by_email(email) is not None:
            return "email"
        return None

    # --- registration ------------------------------------------------------------
    def register(self, username: str, password: str, email: str | None = None) -> User:
        """Create an account with freshly generated, password-wrapped key material.

        Raises:
            ValidationError: Username, password or email fails validation
            ConflictError: Username or email is already registered
            StorageError: Any other persistence failure
        """
        username = normalize_username(username)
        if len(username) < settings.username_min_length:
            raise ValidationError(
                f"Username must be at least {settings.username_min_length} characters long"
            )
        _validate_password(password)
        email = validate_email(email) if email else None

        field = self._conflicting_field(username, email)
        if field is not None:
            raise ConflictError(field)

        password_hash = security.hash_password(password)
        _, wrapped = keyring.create_data_key(password)

        user = User(
            username=username,
            password_hash=password_hash,
            email=email,
            encryption_salt=wrapped.salt_hex,
            wrapped_data_key=wrapped.wrapped,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as err:
            # Lost a race with a concurrent registration.
            self.db.rollback()
            field = self._conflicting_field(username, email)
            if field is not None:
                raise ConflictError(field) from err
            logger.error("Registration integrity error for %r", username, exc_info=True)
            raise StorageError("Error creating user") from err
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("Registration failed for %r", username, exc_info=True)
            raise StorageError("Error creating user") from err

        self.db.refresh(user)
        logger.info("Registered user %s (%r)", user.id, user.username)
        return user

    # --- login / logout ----------------------------------------------------------
    def login(self, username: str, password: str) -> LoginResult:
        """Verify credentials, unlock the data key and cache it with the token's TTL.

        Raises:
            LockoutError: Too many recent failures for ``username``
            AuthenticationError: Unknown username or wrong password
            KeyAccessError: Password verified but the data key could not be unwrapped
        """
        username = normalize_username(username)
        self.rate_limiter.check(username)

        user = self._get_by_username(username)
        stored_hash = user.password_hash if user is not None else _DUMMY_PASSWORD_HASH
        password_ok = security.verify_password(password, stored_hash)

        if user is None or not password_ok:
            self.rate_limiter.record_failure(username)
            logger.info("Failed login for %r", username)
            raise AuthenticationError()

        self.rate_limiter.reset(username)

        if not user.has_key_material:
            self._provision_key_material(user, password)

        try:
            data_key = keyring.unwrap_data_key(
                password,
                user.encryption_salt or "",
                user.wrapped_data_key or "",
            )
        except DecryptionError as err:
            logger.error("Password verified but data key unwrap failed for user %s", user.id)
            raise KeyAccessError() from err

        access_token, expires_at = security.create_access_token(user.id, user.username)
        self.key_cache.put(user.id, data_key, settings.key_cache_ttl_seconds)
        logger.info("User %s logged in", user.id)
        return LoginResult(
            access_token=access_token,
            expires_at=expires_at,
            user_id=user.id,
            username=user.username,
        )

    def _provision_key_material(self, user: User, password: str) -> None:
        """Give an account created before note encryption its data key.

        Notes written by such accounts are plaintext; they are sealed under the
        new key in the same transaction that stores the wrapped key.
        """
        data_key, wrapped = keyring.create_data_key(password)
        user.encryption_salt = wrapped.salt_hex
        user.wrapped_data_key = wrapped.wrapped

        notes = self.db.scalars(select(Note).where(Note.user_id == user.id)).all()
        for note in notes:
            if note.title:
                note.title = EnvelopeCipher.seal(note.title, data_key)
            if note.content:
                note.content = EnvelopeCipher.seal(note.content, data_key)

        self._commit("key provisioning")
        logger.info("Provisioned encryption key for user %s (%d notes sealed)", user.id, len(notes))

    def logout(self, user_id: int) -> None:
        """Evict the cached data key; failures are logged and ignored."""
        try:
            self.key_cache.delete(user_id)
        except StorageError:
            logger.warning("Could not evict cached key for user %s; it will expire", user_id)
        else:
            logger.info("User %s logged out", user_id)

    # --- password reset ----------------------------------------------------------
    def request_password_reset(self, email: str) -> None:
        """Email a single-use reset link if ``email`` belongs to an account.

        Returns normally whether or not the address is registered.

        Raises:
            ValidationError: ``email`` is malformed
            MailDeliveryError: The reset email could not be sent
        """
        email = validate_email(email or "")
        user = self._get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return

        token = secrets.token_hex(RESET_TOKEN_BYTES)
        reset = PasswordReset(
            user_id=user.id,
            token_hash=security.hash_reset_token(token),
            expires_at=self._now() + timedelta(minutes=settings.password_reset_ttl_minutes),
        )
        self.db.add(reset)
        self._commit("password reset request")

        reset_link = f"{settings.public_base_url.rstrip('/')}/reset-password?token={token}"
        mail = render_reset_mail(
            to=user.email or email,
            username=user.username,
            reset_link=reset_link,
            ttl_minutes=settings.password_reset_ttl_minutes,
        )
        try:
            self.mail_sender.send(mail)
        except MailDeliveryError:
            self.db.delete(reset)
            try:
                self._commit("reset token cleanup")
            except StorageError:
                logger.error("Could not delete reset token after failed email send")
            raise
        logger.info("Password reset email issued for user %s", user.id)

    def reset_password(self, token: str, new_password: str) -> PasswordResetResult:
        """Set a new password using a reset token, re-wrapping the data key.

        The data key is re-sealed under the new password when it is still in
        the key cache. Otherwise it cannot be recovered and a new one is issued.
        The password, key material and token removal commit together.

        Raises:
            ValidationError: Missing token or too-short password
            InvalidResetTokenError: Token unknown, used, or expired
            StorageError: The transaction failed and was rolled back
        """
        if not token:
            raise ValidationError("Token and new password are required")
        _validate_password(new_password)

        token_hash = security.hash_reset_token(token)
        reset = self.db.scalar(select(PasswordReset).where(PasswordReset.token_hash == token_hash))
        if reset is None or as_utc(reset.expires_at) <= self._now():
            raise InvalidResetTokenError()
        user = reset.user

        # Claim the token inside the transaction; a concurrent reset that got
        # there first leaves nothing to delete.
        claimed = self.db.execute(
            delete(PasswordReset)
            .where(PasswordReset.token_hash == token_hash)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.db.rollback()
            logger.info("Reset token for user %s was already consumed", user.id)
            raise InvalidResetTokenError()

        data_key_rotated = False
        cached_key = self.key_cache.get(user.id)
        if cached_key is not None:
            wrapped = keyring.wrap_data_key(cached_key, new_password)
        elif user.has_key_material:
            logger.warning(
                "Data key for user %s not cached during reset; issuing a new key", user.id
            )
            _, wrapped = keyring.create_data_key(new_password)
            data_key_rotated = True
        else:
            wrapped = None

        user.password_hash = security.hash_password(new_password)
        if wrapped is not None:
            user.encryption_salt = wrapped.salt_hex
            user.wrapped_data_key = wrapped.wrapped
        self.db.execute(
            delete(PasswordReset)
            .where(PasswordReset.user_id == user.id)
            .execution_options(synchronize_session=False)
        )
        self._commit("password reset")

        self.rate_limiter.reset(user.username)
        logger.info("Password reset for user %s (key rotated: %s)", user.id, data_key_rotated)
        return PasswordResetResult(user_id=user.id, data_key_rotated=data_key_rotated)
