# src/litenotes/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import auth_router, notes_router, password_router

__all__ = [
    "auth_router",
    "notes_router",
    "password_router",
]
