# src/litenotes/models/__init__.py
"""SQLAlchemy models for the LiteNotes application."""

from .note import Note
from .password_reset import PasswordReset
from .user import User

__all__ = [
    "Note",
    "PasswordReset",
    "User",
]
