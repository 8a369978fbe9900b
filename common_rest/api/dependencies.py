# This file provides dependency factories for FastAPI routes and middleware.
# It exists so the MongoDB client is created once per URL and shared through dependency injection.
# Route dependencies read the config and database the application was built with.

from __future__ import annotations

from functools import lru_cache

from fastapi import Request
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from common_rest.api.api_config import ApiConfig
from common_rest.common.db import create_mongo_client


@lru_cache(maxsize=4)
def get_mongo_client(mongo_url: str) -> AsyncMongoClient:
    return create_mongo_client(mongo_url)


def default_database(config: ApiConfig) -> AsyncDatabase:
    return get_mongo_client(config.mongo_url)[config.mongo_db_name]


def get_database(request: Request) -> AsyncDatabase:
    return request.app.state.database


def get_config(request: Request) -> ApiConfig:
    return request.app.state.config
