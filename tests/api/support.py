# This file provides shared helpers for API endpoint tests.
# It exists so tests can exercise the controller without a running MongoDB server.
# The fake collection evaluates the small subset of query operators the tests rely on.
# Centralized test wiring keeps API tests small and focused on behavior.

from __future__ import annotations

import copy
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import BulkWriteError, OperationFailure
from pymongo.results import DeleteResult, InsertManyResult

from common_rest.api.api_config import ApiConfig
from common_rest.api.app import create_app


def build_test_config(
    *,
    collections: list[str] | None = None,
    error_status_codes: bool = False,
) -> ApiConfig:
    """Create deterministic API config for tests."""

    return ApiConfig(
        api_name="Test Common REST API",
        api_version_path="/api/v1",
        host="0.0.0.0",
        port=8000,
        environment="test",
        mongo_url="mongodb://localhost:27017",
        mongo_db_name="common_rest_test",
        collections=["items"] if collections is None else collections,
        error_status_codes=error_status_codes,
        enable_request_logging=False,
        allowed_origins=[],
        app_version="0.1.0",
    )


def _compare(operator: str, actual: Any, expected: Any) -> bool:
    if operator == "$in":
        return actual in expected
    if operator == "$nin":
        return actual not in expected
    if operator == "$ne":
        return actual != expected
    if operator == "$regex":
        return isinstance(actual, str) and re.search(expected, actual) is not None
    if actual is None or isinstance(actual, str) != isinstance(expected, str):
        return False
    if operator == "$gt":
        return actual > expected
    if operator == "$gte":
        return actual >= expected
    if operator == "$lt":
        return actual < expected
    if operator == "$lte":
        return actual <= expected
    raise NotImplementedError(f"FakeCollection does not support {operator}")


def matches(document: dict[str, Any], filter_: dict[str, Any]) -> bool:
    for field, condition in filter_.items():
        actual = document.get(field)
        if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
            if not all(_compare(op, actual, expected) for op, expected in condition.items()):
                return False
        elif actual != condition:
            return False
    return True


def _project(document: dict[str, Any], projection: list[str] | None) -> dict[str, Any]:
    if not projection:
        return copy.deepcopy(document)
    kept = {"_id", *projection}
    return {key: copy.deepcopy(value) for key, value in document.items() if key in kept}


class FakeCursor:
    def __init__(
        self,
        collection: FakeCollection,
        filter_: dict[str, Any],
        *,
        projection: list[str] | None = None,
        sort: list[tuple[str, int]] | None = None,
        limit: int = 0,
        skip: int = 0,
    ) -> None:
        self._collection = collection
        self._filter = filter_
        self._projection = projection
        self._sort = sort
        self._limit = limit
        self._skip = skip

    def _evaluate(self) -> list[dict[str, Any]]:
        self._collection.raise_if_failing()
        rows = [doc for doc in self._collection.documents if matches(doc, self._filter)]
        for field, direction in reversed(self._sort or []):
            rows.sort(key=lambda doc: (doc.get(field) is None, doc.get(field)), reverse=direction < 0)
        rows = rows[self._skip :]
        if self._limit:
            rows = rows[: self._limit]
        return [_project(doc, self._projection) for doc in rows]

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        rows = self._evaluate()
        return rows[:length] if length else rows


class FakeCollection:
    """In-memory stand-in for `AsyncCollection` covering the calls the controller makes."""

    def __init__(self, name: str, documents: list[dict[str, Any]] | None = None) -> None:
        self.name = name
        self.documents: list[dict[str, Any]] = [copy.deepcopy(doc) for doc in documents or []]
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.failure: Exception | None = None

    def raise_if_failing(self) -> None:
        if self.failure is not None:
            raise self.failure

    def find(self, filter_: dict[str, Any] | None = None, **kwargs: Any) -> FakeCursor:
        self.calls.append(("find", (filter_,), kwargs))
        return FakeCursor(self, filter_ or {}, **kwargs)

    async def find_one(self, filter_: dict[str, Any] | None = None, **kwargs: Any) -> dict[str, Any] | None:
        self.calls.append(("find_one", (filter_,), kwargs))
        kwargs = {**kwargs, "limit": 1}
        rows = await FakeCursor(self, filter_ or {}, **kwargs).to_list()
        return rows[0] if rows else None

    async def insert_many(self, documents: list[dict[str, Any]]) -> InsertManyResult:
        self.calls.append(("insert_many", (documents,), {}))
        self.raise_if_failing()
        if not documents:
            raise TypeError("documents must be a non-empty list")
        inserted_ids = []
        for document in documents:
            document.setdefault("_id", ObjectId())
            if any(existing["_id"] == document["_id"] for existing in self.documents):
                raise BulkWriteError(
                    {
                        "writeErrors": [
                            {"index": len(inserted_ids), "code": 11000, "errmsg": "E11000 duplicate key error"}
                        ],
                        "nInserted": len(inserted_ids),
                    }
                )
            self.documents.append(copy.deepcopy(document))
            inserted_ids.append(document["_id"])
        return InsertManyResult(inserted_ids, True)

    async def find_one_and_update(
        self,
        filter_: dict[str, Any],
        update: dict[str, Any],
        *,
        projection: list[str] | None = None,
        upsert: bool = False,
        return_document: Any = None,
    ) -> dict[str, Any] | None:
        self.calls.append(
            (
                "find_one_and_update",
                (filter_, update),
                {"projection": projection, "upsert": upsert, "return_document": return_document},
            )
        )
        self.raise_if_failing()
        target = next((doc for doc in self.documents if matches(doc, filter_)), None)
        if target is None:
            if not upsert:
                return None
            target = {key: value for key, value in filter_.items() if not isinstance(value, dict)}
            self.documents.append(target)
        target.update(copy.deepcopy(update.get("$set", {})))
        return _project(target, projection)

    async def delete_one(self, filter_: dict[str, Any]) -> DeleteResult:
        self.calls.append(("delete_one", (filter_,), {}))
        self.raise_if_failing()
        for index, document in enumerate(self.documents):
            if matches(document, filter_):
                del self.documents[index]
                return DeleteResult({"n": 1, "ok": 1.0}, True)
        return DeleteResult({"n": 0, "ok": 1.0}, True)


class FakeDatabase:
    """Dictionary of fake collections that also answers `ping`."""

    def __init__(
        self,
        *,
        name: str = "common_rest_test",
        connected: bool = True,
        existing_collections: list[str] | None = None,
    ) -> None:
        self.name = name
        self.connected = connected
        self.existing_collections = existing_collections
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def command(self, command: str) -> dict[str, Any]:
        if not self.connected:
            raise OperationFailure("not connected")
        return {"ok": 1.0}

    async def list_collection_names(self) -> list[str]:
        if self.existing_collections is not None:
            return list(self.existing_collections)
        return sorted(self.collections)


@contextmanager
def api_test_client(
    *,
    config: ApiConfig | None = None,
    database: FakeDatabase | None = None,
) -> Iterator[TestClient]:
    """Yield a TestClient for an app wired to a fake database."""

    resolved_config = config or build_test_config()
    resolved_database = database if database is not None else FakeDatabase()
    app = create_app(config=resolved_config, database=resolved_database)  # type: ignore[arg-type]

    with TestClient(app) as client:
        yield client
