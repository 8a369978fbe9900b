# This file converts driver results and failures into JSON-ready payloads.
# ObjectIds render as hex strings and write results keep the camelCase shape clients already parse.
# Non-finite floats render as null.

from __future__ import annotations

import math
from typing import Any

from bson import ObjectId
from bson.decimal128 import Decimal128
from bson.regex import Regex
from bson.timestamp import Timestamp
from fastapi.encoders import jsonable_encoder
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult


def _finite_or_none(value: float) -> float | None:
    # NaN and infinities are valid BSON but not valid JSON.
    return value if math.isfinite(value) else None


_BSON_ENCODERS: dict[Any, Any] = {
    float: _finite_or_none,
    ObjectId: str,
    Decimal128: str,
    Regex: lambda value: value.pattern,
    Timestamp: lambda value: {"t": value.time, "i": value.inc},
}


def _write_result_to_dict(result: Any) -> dict[str, Any] | None:
    if isinstance(result, InsertManyResult):
        return {
            "acknowledged": result.acknowledged,
            "insertedCount": len(result.inserted_ids),
            "insertedIds": {str(index): _id for index, _id in enumerate(result.inserted_ids)},
        }
    if isinstance(result, InsertOneResult):
        return {"acknowledged": result.acknowledged, "insertedId": result.inserted_id}
    if isinstance(result, DeleteResult):
        return {
            "acknowledged": result.acknowledged,
            "deletedCount": result.deleted_count if result.acknowledged else None,
        }
    if isinstance(result, UpdateResult):
        if not result.acknowledged:
            return {"acknowledged": False}
        return {
            "acknowledged": True,
            "matchedCount": result.matched_count,
            "modifiedCount": result.modified_count,
            "upsertedCount": 1 if result.upserted_id is not None else 0,
            "upsertedId": result.upserted_id,
        }
    return None


def to_jsonable(value: Any) -> Any:
    """Encode a document, document list, or pymongo write result for a JSON response."""

    converted = _write_result_to_dict(value)
    if converted is not None:
        value = converted
    return jsonable_encoder(value, custom_encoder=_BSON_ENCODERS)


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Wrap a failure as `{"error": {...}}`, forwarding driver codes and details verbatim."""

    return {
        "error": {
            "name": type(exc).__name__,
            "message": str(exc),
            "code": getattr(exc, "code", None),
            "details": to_jsonable(getattr(exc, "details", None)),
        }
    }
