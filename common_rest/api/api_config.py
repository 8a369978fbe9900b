# This file defines runtime settings for the API layer in one place.
# It exists so versioning, mounted collections, and error behavior can be configured without code edits.
# The config loader reads environment variables and applies safe defaults for local development.
# It also validates collection names and version paths before any route is registered.

from __future__ import annotations

import os
import re
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from common_rest.common.settings import load_settings

_COLLECTION_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_.-]*$")


class ApiConfig(BaseModel):
    """Typed API runtime configuration."""

    model_config = ConfigDict(extra="ignore")

    api_name: str = "Common REST API"
    api_version_path: str = "/api/v1"
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "local"
    mongo_url: str
    mongo_db_name: str
    collections: list[str] = Field(default_factory=list)
    error_status_codes: bool = False
    enable_request_logging: bool = False
    allowed_origins: list[str] = Field(default_factory=list)
    app_version: str = "0.1.0"

    @field_validator("api_version_path")
    @classmethod
    def validate_api_version_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("api_version_path must start with '/'.")
        parts = [part for part in value.split("/") if part]
        if len(parts) < 2 or parts[-1].startswith("v") is False:
            raise ValueError("api_version_path must look like '/api/v1'.")
        return value.rstrip("/")

    @field_validator("collections")
    @classmethod
    def validate_collections(cls, value: list[str]) -> list[str]:
        for name in value:
            if not _COLLECTION_NAME_RE.match(name) or name.startswith("system."):
                raise ValueError(f"Unsafe collection name: {name!r}")
        if len(set(value)) != len(value):
            raise ValueError("collections must not repeat a name.")
        return value

    @field_validator("port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than 0.")
        return value

    def api_version_label(self) -> str:
        return self.api_version_path.rstrip("/").split("/")[-1]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be boolean-like, got {raw!r}")


def _env_list(name: str, default: list[str] | None = None) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_api_config(*, load_env: bool = True) -> ApiConfig:
    """Load API configuration from `.env` and process environment.

    Connection and bind values come from `Settings`; only API-specific options are read here.
    """

    if load_env:
        load_dotenv()
    settings = load_settings(load_env=False)

    config_values: dict[str, object] = {
        "api_name": os.getenv("API_NAME", "Common REST API"),
        "api_version_path": os.getenv("API_VERSION_PATH", "/api/v1"),
        "host": settings.API_HOST,
        "port": settings.API_PORT,
        "environment": settings.ENV,
        "mongo_url": settings.MONGO_URL,
        "mongo_db_name": settings.MONGO_DB_NAME,
        "collections": _env_list("API_COLLECTIONS", []),
        "error_status_codes": _env_bool("API_ERROR_STATUS_CODES", False),
        "enable_request_logging": _env_bool("API_ENABLE_REQUEST_LOGGING", False),
        "allowed_origins": _env_list("API_ALLOWED_ORIGINS", []),
        "app_version": os.getenv("APP_VERSION", "0.1.0"),
    }

    return ApiConfig.model_validate(config_values)


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """Cached accessor for API config."""

    return load_api_config()
