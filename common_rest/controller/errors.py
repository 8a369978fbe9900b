# Typed failures raised while turning a request into a MongoDB call.
# Driver failures are not wrapped; they reach the controller's error path as pymongo raises them.

from __future__ import annotations


class ControllerError(Exception):
    """Base class for request-level failures detected before the store call."""


class QueryDecodeError(ControllerError, ValueError):
    """A query-string directive, `__json` value, or request body could not be decoded."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"Invalid value for '{key}': {message}")


class InvalidDocumentId(ControllerError, ValueError):
    """The `{id}` path parameter is not a valid ObjectId."""

    def __init__(self, raw_id: object) -> None:
        self.raw_id = raw_id
        super().__init__(
            f"{raw_id!r} is not a valid ObjectId, it must be a 24-character hex string"
        )
