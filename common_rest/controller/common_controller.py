# This file implements the generic collection controller behind every common route.
# It exists so a MongoDB collection can be exposed over REST without writing per-collection handlers.
# Each verb handler performs exactly one driver call and funnels every failure through one error path.
# Five hook points let a specialised controller reshape payloads without rewriting a handler.

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from fastapi.responses import JSONResponse
from pymongo import ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import BulkWriteError, DuplicateKeyError
from starlette.datastructures import QueryParams

from common_rest.controller import query_parsing
from common_rest.controller.errors import ControllerError, InvalidDocumentId, QueryDecodeError
from common_rest.controller.query_parsing import Modifiers, QueryMap, QueryValue
from common_rest.controller.serialization import error_payload, to_jsonable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControllerHooks:
    """Optional strategy callables replacing the default pass-through hooks.

    Each callable may be a plain function or a coroutine function.
    """

    verb_get: Callable[[list[dict[str, Any]]], Any] | None = None
    verb_get_by_id: Callable[[dict[str, Any] | None], Any] | None = None
    pre_update: Callable[[str, dict[str, Any]], Any] | None = None
    post_update: Callable[[dict[str, Any], dict[str, Any] | None], Any] | None = None
    post_insert: Callable[[list[dict[str, Any]], Any], Any] | None = None


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def query_map_from_params(params: QueryParams) -> dict[str, QueryValue]:
    """Flatten query parameters; a repeated key keeps every value as a list."""

    query: dict[str, QueryValue] = {}
    for key in params.keys():
        values = params.getlist(key)
        query[key] = values[0] if len(values) == 1 else values
    return query


def _is_duplicate_key(exc: Exception) -> bool:
    if isinstance(exc, DuplicateKeyError):
        return True
    if isinstance(exc, BulkWriteError):
        write_errors = (exc.details or {}).get("writeErrors", [])
        return any(error.get("code") == 11000 for error in write_errors)
    return False


def parse_object_id(raw_id: str) -> ObjectId:
    try:
        return ObjectId(raw_id)
    except (InvalidId, TypeError) as exc:
        raise InvalidDocumentId(raw_id) from exc


class CommonController:
    """CRUD verb handlers over a single MongoDB collection."""

    reserved_keys: frozenset[str] = query_parsing.RESERVED_KEYS

    def __init__(
        self,
        collection: AsyncCollection,
        *,
        hooks: ControllerHooks | None = None,
        error_status_codes: bool = False,
    ) -> None:
        self.collection = collection
        self.hooks = hooks or ControllerHooks()
        self.error_status_codes = error_status_codes

    # Hook points

    def verb_get_middleware(self, models: list[dict[str, Any]]) -> Any:
        if self.hooks.verb_get is not None:
            return self.hooks.verb_get(models)
        return models

    def verb_get_by_id_middleware(self, model: dict[str, Any] | None) -> Any:
        if self.hooks.verb_get_by_id is not None:
            return self.hooks.verb_get_by_id(model)
        return model

    def pre_update_middleware(self, document_id: str, param: dict[str, Any]) -> Any:
        """Runs before the update; the returned mapping becomes the `$set` payload."""

        if self.hooks.pre_update is not None:
            return self.hooks.pre_update(document_id, param)
        return param

    def post_update_middleware(self, update_json: dict[str, Any], model: dict[str, Any] | None) -> Any:
        if self.hooks.post_update is not None:
            return self.hooks.post_update(update_json, model)
        return model

    def post_insert_middleware(self, insert_json: list[dict[str, Any]], model: Any) -> Any:
        if self.hooks.post_insert is not None:
            return self.hooks.post_insert(insert_json, model)
        return model

    # Query translation

    def modifiers(self, query: QueryMap) -> Modifiers:
        return query_parsing.modifiers(query)

    def build_filter(self, query: QueryMap) -> dict[str, Any]:
        return query_parsing.build_filter(query, reserved_keys=self.reserved_keys)

    # Verb handlers

    async def verb_get(self, request: Request) -> JSONResponse:
        try:
            query = query_map_from_params(request.query_params)
            filter_ = self.build_filter(query)
            mods = self.modifiers(query)
            self._note_populate(mods)

            cursor = self.collection.find(
                filter_,
                projection=mods.projection,
                sort=mods.sort_spec,
                limit=mods.limit,
                skip=mods.skip,
            )
            models = await cursor.to_list()
            models = await _resolve(self.verb_get_middleware(models))
            return self._json(models)
        except Exception as exc:
            return self._error_response(request, exc)

    async def verb_get_by_id(self, request: Request) -> JSONResponse:
        try:
            query = query_map_from_params(request.query_params)
            mods = self.modifiers(query)
            self._note_populate(mods)
            filter_ = {"_id": parse_object_id(request.path_params["id"])}

            model = await self.collection.find_one(
                filter_,
                projection=mods.projection,
                sort=mods.sort_spec,
                limit=mods.limit,
                skip=mods.skip,
            )
            model = await _resolve(self.verb_get_by_id_middleware(model))
            return self._json(model)
        except Exception as exc:
            return self._error_response(request, exc)

    async def verb_post(self, request: Request) -> JSONResponse:
        try:
            param = await self._read_body(request)
            models = param if isinstance(param, list) else [param]
            if not all(isinstance(model, dict) for model in models):
                raise QueryDecodeError("body", "expected a JSON object or an array of objects")

            result = await self.collection.insert_many(models)
            result = await _resolve(self.post_insert_middleware(models, result))
            return self._json(result)
        except Exception as exc:
            return self._error_response(request, exc)

    async def verb_put(self, request: Request) -> JSONResponse:
        try:
            raw_id = request.path_params["id"]
            filter_ = {"_id": parse_object_id(raw_id)}
            param = await self._read_body(request)
            if not isinstance(param, dict):
                raise QueryDecodeError("body", "expected a JSON object")

            new_param = await _resolve(self.pre_update_middleware(raw_id, param))
            mods = self.modifiers(query_map_from_params(request.query_params))

            model = await self.collection.find_one_and_update(
                filter_,
                {"$set": new_param},
                projection=mods.projection,
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
            model = await _resolve(self.post_update_middleware(new_param, model))
            return self._json(model)
        except Exception as exc:
            return self._error_response(request, exc)

    async def verb_delete(self, request: Request) -> JSONResponse:
        try:
            filter_ = {"_id": parse_object_id(request.path_params["id"])}
            result = await self.collection.delete_one(filter_)
            return self._json(result)
        except Exception as exc:
            return self._error_response(request, exc)

    async def verb_copy(self, request: Request) -> JSONResponse:
        return self._not_implemented("COPY")

    async def verb_patch(self, request: Request) -> JSONResponse:
        return self._not_implemented("PATCH")

    # Helpers

    async def _read_body(self, request: Request) -> Any:
        try:
            return await request.json()
        except ValueError as exc:
            raise QueryDecodeError("body", f"malformed JSON ({exc})") from exc

    def _note_populate(self, mods: Modifiers) -> None:
        if mods.populate:
            logger.debug(
                "Ignoring __populate=%s on %s: MongoDB has no server-side population",
                mods.populate,
                self.collection.name,
            )

    def _json(self, value: Any) -> JSONResponse:
        return JSONResponse(content=to_jsonable(value))

    def _status_for(self, exc: Exception) -> int:
        if isinstance(exc, ControllerError):
            return 400
        if _is_duplicate_key(exc):
            return 409
        return 500

    def _error_response(self, request: Request, exc: Exception) -> JSONResponse:
        if isinstance(exc, ControllerError):
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        else:
            logger.exception("%s %s failed on %s", request.method, request.url.path, self.collection.name)

        status_code = self._status_for(exc) if self.error_status_codes else 200
        return JSONResponse(status_code=status_code, content=error_payload(exc))

    def _not_implemented(self, method: str) -> JSONResponse:
        exc = NotImplementedError(f"{method} is not supported on {self.collection.name}")
        return JSONResponse(status_code=501, content=error_payload(exc))
