"""Domain exceptions raised by LiteNotes services.

Services raise these; the HTTP layer maps each class to a status code in
``litenotes.main``. Messages carried by authentication-related errors are
deliberately uninformative.
"""

from __future__ import annotations


class LiteNotesError(Exception):
    """Base class for all expected, mapped failures."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LiteNotesError):
    """Malformed or out-of-range input supplied by the caller."""

    status_code = 400
    default_message = "Invalid input"


class ConflictError(LiteNotesError):
    """A uniqueness constraint was violated on ``field``."""

    status_code = 409

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"{field.capitalize()} already exists")


class AuthenticationError(LiteNotesError):
    """Bad credentials or a bad/expired bearer token."""

    status_code = 401
    default_message = "Invalid credentials"


class LockoutError(LiteNotesError):
    """Too many recent failed logins for a username."""

    status_code = 429

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        minutes = max(1, -(-retry_after // 60))
        super().__init__(f"Too many failed attempts. Please try again in {minutes} minutes.")


class KeyUnavailableError(LiteNotesError):
    """The cached data key for an authenticated user is gone.

    The bearer token may still be valid; the client must log in again to
    restore the encryption context.
    """

    status_code = 401
    default_message = "Encryption session expired. Please log in again."


class KeyAccessError(LiteNotesError):
    """The password hash matched but the stored data key could not be unwrapped."""

    status_code = 500
    default_message = "Unable to access encryption key"


class DecryptionError(LiteNotesError):
    """An envelope failed to authenticate or was malformed."""

    status_code = 500
    default_message = "Decryption failed"


class NotFoundError(LiteNotesError):
    """The requested record does not exist or is not owned by the caller."""

    status_code = 404
    default_message = "Not found"


class InvalidResetTokenError(LiteNotesError):
    """A password reset token is unknown, already used, or expired."""

    status_code = 400
    default_message = "Invalid or expired reset token"


class StorageError(LiteNotesError):
    """The backing store failed; details are logged, never returned."""

    status_code = 500
    default_message = "A storage error occurred"


class MailDeliveryError(LiteNotesError):
    """The outbound mail sender could not deliver a message."""

    status_code = 500
    default_message = "Error sending email. Please try again later."
