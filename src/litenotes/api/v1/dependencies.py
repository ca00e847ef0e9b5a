"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from litenotes.core.errors import AuthenticationError
from litenotes.core.security import decode_access_token
from litenotes.db.session import get_db
from litenotes.models import User
from litenotes.services.key_cache import KeyCache, get_key_cache
from litenotes.services.mailer import MailSender, get_mail_sender
from litenotes.services.note_service import NoteService
from litenotes.services.rate_limit import LoginRateLimiter, get_login_rate_limiter
from litenotes.services.user_service import AccountService

# HTTP Bearer scheme for JWT authentication; missing headers surface as 401 below.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_key_cache_dep() -> KeyCache:
    """Return the shared data key cache."""
    return get_key_cache()


def get_rate_limiter_dep() -> LoginRateLimiter:
    """Return the shared failed-login limiter."""
    return get_login_rate_limiter()


def get_mail_sender_dep() -> MailSender:
    """Return the configured outbound mail sender."""
    return get_mail_sender()


KeyCacheDep = Annotated[KeyCache, Depends(get_key_cache_dep)]
RateLimiterDep = Annotated[LoginRateLimiter, Depends(get_rate_limiter_dep)]
MailSenderDep = Annotated[MailSender, Depends(get_mail_sender_dep)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        AuthenticationError: If the token is missing, invalid, or the user no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token provided")
    claims = decode_access_token(credentials.credentials)

    user = db.get(User, claims.user_id)
    if user is None or user.username != claims.username:
        raise AuthenticationError("Invalid or expired token")
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_account_service(
    db: SessionDep,
    key_cache: KeyCacheDep,
    rate_limiter: RateLimiterDep,
    mail_sender: MailSenderDep,
) -> AccountService:
    """Build the account service for one request."""
    return AccountService(db, key_cache, rate_limiter, mail_sender)


def get_note_service(db: SessionDep, key_cache: KeyCacheDep) -> NoteService:
    """Build the note service for one request."""
    return NoteService(db, key_cache)


AccountServiceDep = Annotated[AccountService, Depends(get_account_service)]
NoteServiceDep = Annotated[NoteService, Depends(get_note_service)]
