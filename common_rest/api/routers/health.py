# This file defines liveness, readiness, and version endpoints for API operations.
# It exists so orchestration and monitoring systems can verify service health quickly.
# Readiness follows MongoDB connectivity; missing collections are reported but do not block it.
# Version details here help clients track API compatibility over time.

from __future__ import annotations

import subprocess
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from common_rest.api.api_config import ApiConfig
from common_rest.api.dependencies import get_config, get_database
from common_rest.api.schemas.health_schemas import HealthResponse, ReadinessResponse, VersionResponse
from common_rest.common.db import ping

router = APIRouter(tags=["health"])
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
DatabaseDep = Annotated[AsyncDatabase, Depends(get_database)]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _version_fields(config: ApiConfig) -> dict[str, str]:
    return {"api_version": config.api_version_label()}


def _git_commit() -> str | None:
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            check=True,
            capture_output=True,
            text=True,
        )
        value = completed.stdout.strip()
        return value or None
    except (OSError, subprocess.CalledProcessError):
        return None


@router.get("/health", response_model=HealthResponse)
def health(
    request: Request,
    config: ConfigDep,
) -> dict[str, object]:
    return {
        **_version_fields(config),
        "request_id": request.state.request_id,
        "status": "ok",
        "environment": config.environment,
        "service_name": config.api_name,
        "timestamp": _utc_now(),
    }


@router.get("/ready", response_model=ReadinessResponse)
async def ready(
    request: Request,
    config: ConfigDep,
    db: DatabaseDep,
) -> dict[str, object]:
    db_connected = await ping(db)
    missing_collections = list(config.collections)
    if db_connected:
        try:
            existing = set(await db.list_collection_names())
            missing_collections = [name for name in config.collections if name not in existing]
        except PyMongoError:
            db_connected = False
    # MongoDB creates a collection on its first write.
    collections_ready = db_connected and not missing_collections

    return {
        **_version_fields(config),
        "request_id": request.state.request_id,
        "db_connected": db_connected,
        "collections_ready": collections_ready,
        "missing_collections": missing_collections,
        "ready": db_connected,
        "database": "reachable" if db_connected else "unreachable",
        "timestamp": _utc_now(),
    }


@router.get("/version", response_model=VersionResponse)
def version(
    request: Request,
    config: ConfigDep,
) -> dict[str, object]:
    return {
        **_version_fields(config),
        "request_id": request.state.request_id,
        "api_version_path": config.api_version_path,
        "app_version": config.app_version,
        "git_commit": _git_commit(),
        "project": config.api_name,
        "version": config.app_version,
        "timestamp": _utc_now(),
    }
