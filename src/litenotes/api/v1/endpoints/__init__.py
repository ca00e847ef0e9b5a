# src/litenotes/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .notes import router as notes_router
from .password import router as password_router

__all__ = [
    "auth_router",
    "notes_router",
    "password_router",
]
