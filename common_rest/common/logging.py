"""
Logging configuration helpers.
It centralizes cross-cutting concerns like settings, logging, and database access used by the service.
Keeping these helpers isolated reduces duplication and keeps the controller focused on request handling.
"""

from __future__ import annotations

import logging

from common_rest.common.settings import get_settings

_LOGGING_CONFIGURED = False


def configure_logging() -> None:
    """Configure process-wide logging from environment settings."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    settings = get_settings()
    level_name = settings.LOG_LEVEL.upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # pymongo logs every command at DEBUG; keep it quieter than the service itself.
    logging.getLogger("pymongo").setLevel(max(level, logging.INFO))
    _LOGGING_CONFIGURED = True
