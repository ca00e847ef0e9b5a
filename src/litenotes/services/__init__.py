# src/litenotes/services/__init__.py
"""Business logic services for the LiteNotes application."""

from .envelope import EnvelopeCipher
from .key_cache import InMemoryKeyCache, KeyCache, RedisKeyCache
from .note_service import NoteService
from .rate_limit import LoginRateLimiter
from .user_service import AccountService

__all__ = [
    "AccountService",
    "EnvelopeCipher",
    "InMemoryKeyCache",
    "KeyCache",
    "LoginRateLimiter",
    "NoteService",
    "RedisKeyCache",
]
