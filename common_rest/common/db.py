"""
Database connection utilities.
It centralizes cross-cutting concerns like settings, logging, and database access used by the service.
Keeping these helpers isolated reduces duplication and keeps the controller focused on request handling.
"""

from __future__ import annotations

import logging
from typing import Any

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


def create_mongo_client(mongo_url: str, **options: Any) -> AsyncMongoClient:
    """Build an asynchronous client; no connection is opened until the first operation."""

    if not mongo_url:
        raise ValueError("Please set MONGO_URL in your environment variables.")
    return AsyncMongoClient(mongo_url, **options)


async def ping(database: AsyncDatabase) -> bool:
    """Return True if the database answers a `ping` command."""

    try:
        await database.command("ping")
        return True
    except PyMongoError as exc:
        logger.warning("MongoDB ping failed for %s: %s", database.name, exc)
        return False
