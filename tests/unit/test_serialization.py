"""
Unit tests for response serialization.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime

from bson import ObjectId
from pymongo.errors import OperationFailure
from pymongo.results import DeleteResult, InsertManyResult

from common_rest.controller.errors import InvalidDocumentId
from common_rest.controller.serialization import error_payload, to_jsonable


def test_documents_render_object_ids_as_hex() -> None:
    oid = ObjectId()
    created = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

    payload = to_jsonable([{"_id": oid, "created": created, "tags": ["a"]}])

    assert payload == [{"_id": str(oid), "created": created.isoformat(), "tags": ["a"]}]


def test_insert_many_result_uses_driver_shape() -> None:
    first, second = ObjectId(), ObjectId()

    payload = to_jsonable(InsertManyResult([first, second], True))

    assert payload == {
        "acknowledged": True,
        "insertedCount": 2,
        "insertedIds": {"0": str(first), "1": str(second)},
    }


def test_delete_result_reports_deleted_count() -> None:
    assert to_jsonable(DeleteResult({"n": 0, "ok": 1.0}, True)) == {
        "acknowledged": True,
        "deletedCount": 0,
    }


def test_error_payload_forwards_driver_code_and_details() -> None:
    exc = OperationFailure("boom", code=2, details={"ok": 0, "errmsg": "boom", "code": 2})

    payload = error_payload(exc)

    assert payload["error"]["name"] == "OperationFailure"
    assert payload["error"]["code"] == 2
    assert payload["error"]["details"] == {"ok": 0, "errmsg": "boom", "code": 2}


def test_error_payload_for_request_errors_has_no_code() -> None:
    payload = error_payload(InvalidDocumentId("nope"))

    assert payload["error"]["name"] == "InvalidDocumentId"
    assert "nope" in payload["error"]["message"]
    assert payload["error"]["code"] is None
    assert payload["error"]["details"] is None


def test_non_finite_floats_render_as_null() -> None:
    payload = to_jsonable([{"score": math.nan, "high": math.inf, "low": -math.inf, "ok": 1.5}])

    assert payload == [{"score": None, "high": None, "low": None, "ok": 1.5}]
