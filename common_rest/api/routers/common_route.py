# This file binds a CommonController's verb handlers to a FastAPI router.
# It exists so one call exposes a collection on the conventional REST paths.
# List and create live on the collection path; read, update and delete live on `{path}/{id}`.
# COPY and PATCH are registered too and answer 501 until they get real semantics.

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pymongo.asynchronous.collection import AsyncCollection

from common_rest.controller.common_controller import CommonController, ControllerHooks


def _normalize_route(route: str) -> str:
    cleaned = route.strip().strip("/")
    if not cleaned:
        raise ValueError("route must name a path segment, e.g. '/items'")
    return f"/{cleaned}"


def create_common_route(router: APIRouter, route: str, controller: CommonController) -> APIRouter:
    """Register the controller's handlers on `route` and `route/{id}`."""

    collection_path = _normalize_route(route)
    item_path = f"{collection_path}/{{id}}"
    name = collection_path.strip("/").replace("/", "_")
    tags: list[Any] = [name]

    router.add_api_route(collection_path, controller.verb_get, methods=["GET"], name=f"{name}_list", tags=tags)
    router.add_api_route(collection_path, controller.verb_post, methods=["POST"], name=f"{name}_create", tags=tags)
    router.add_api_route(item_path, controller.verb_get_by_id, methods=["GET"], name=f"{name}_get", tags=tags)
    router.add_api_route(item_path, controller.verb_put, methods=["PUT"], name=f"{name}_update", tags=tags)
    router.add_api_route(item_path, controller.verb_delete, methods=["DELETE"], name=f"{name}_delete", tags=tags)
    router.add_api_route(item_path, controller.verb_patch, methods=["PATCH"], name=f"{name}_patch", tags=tags)
    router.add_api_route(
        item_path,
        controller.verb_copy,
        methods=["COPY"],
        name=f"{name}_copy",
        include_in_schema=False,
    )
    return router


def create(
    router: APIRouter,
    route: str,
    collection: AsyncCollection,
    *,
    controller_cls: type[CommonController] = CommonController,
    hooks: ControllerHooks | None = None,
    error_status_codes: bool = False,
) -> CommonController:
    """Build a controller for `collection`, register its routes, and return it."""

    controller = controller_cls(collection, hooks=hooks, error_status_codes=error_status_codes)
    create_common_route(router, route, controller)
    return controller
