"""
Generic MongoDB REST controller for FastAPI.

`create(router, "/items", collection)` exposes a collection with list, create,
read, update and delete handlers whose filters, projection, sort and paging come
from the query string.
"""

from common_rest.api.routers.common_route import create, create_common_route
from common_rest.controller.common_controller import CommonController, ControllerHooks
from common_rest.controller.errors import ControllerError, InvalidDocumentId, QueryDecodeError
from common_rest.controller.query_parsing import Modifiers, build_filter, modifiers

__all__ = [
    "CommonController",
    "ControllerError",
    "ControllerHooks",
    "InvalidDocumentId",
    "Modifiers",
    "QueryDecodeError",
    "build_filter",
    "create",
    "create_common_route",
    "modifiers",
]
