# src/litenotes/main.py
"""Main entry point for the LiteNotes application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from litenotes.api.v1 import auth_router, notes_router, password_router
from litenotes.core.errors import (
    ConflictError,
    KeyUnavailableError,
    LiteNotesError,
    LockoutError,
)
from litenotes.core.logging import configure_logging
from litenotes.core.settings import settings

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="LiteNotes API",
    description="Multi-user note taking with per-user encryption at rest",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(notes_router, prefix="/api/v1")
app.include_router(password_router, prefix="/api/v1")


@app.exception_handler(LiteNotesError)
async def handle_domain_error(request: Request, exc: LiteNotesError) -> JSONResponse:
    """Translate service-layer errors into JSON responses."""
    body: dict[str, object] = {"detail": exc.message}
    headers: dict[str, str] = {}

    if isinstance(exc, ConflictError):
        body["field"] = exc.field
    elif isinstance(exc, LockoutError):
        body["retry_after"] = exc.retry_after
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, KeyUnavailableError):
        body["code"] = "reauthenticate"

    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers or None)


@app.exception_handler(SQLAlchemyError)
async def handle_storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Hide database failures behind a generic message."""
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "A storage error occurred"})


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    logger.info("%s %s starting", settings.app_name, settings.app_version)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "LiteNotes API",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("litenotes.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
