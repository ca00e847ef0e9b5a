"""Logging configuration for the LiteNotes service."""

from __future__ import annotations

import logging

from litenotes.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; an existing handler configuration is left alone.
    """
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("litenotes").setLevel(resolved)
