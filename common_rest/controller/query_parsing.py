# This file translates request query strings into MongoDB filters and cursor options.
# It exists so every verb handler interprets `__fields`, `__sort`, `__limit` and friends the same way.
# Filter keys may carry a `__regex` or `__json` suffix to opt out of plain string equality.
# Decode failures raise `QueryDecodeError` instead of falling back to defaults.

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final, Union

from bson import json_util
from bson.errors import BSONError
from pymongo import ASCENDING, DESCENDING

from common_rest.controller.errors import QueryDecodeError

QueryValue = Union[str, list[str]]
QueryMap = Mapping[str, QueryValue]

FIELDS_KEY: Final[str] = "__fields"
POPULATE_KEY: Final[str] = "__populate"
SORT_KEY: Final[str] = "__sort"
LIMIT_KEY: Final[str] = "__limit"
SKIP_KEY: Final[str] = "__skip"

RESERVED_KEYS: Final[frozenset[str]] = frozenset(
    {FIELDS_KEY, POPULATE_KEY, SORT_KEY, LIMIT_KEY, SKIP_KEY, "on"}
)

REGEX_SUFFIX: Final[str] = "__regex"
JSON_SUFFIX: Final[str] = "__json"

_SORT_DIRECTIONS: Final[dict[Any, int]] = {
    1: ASCENDING,
    -1: DESCENDING,
    "asc": ASCENDING,
    "ascending": ASCENDING,
    "desc": DESCENDING,
    "descending": DESCENDING,
}


@dataclass(frozen=True)
class Modifiers:
    fields: list[str] = field(default_factory=list)
    populate: list[str] = field(default_factory=list)
    sort: dict[str, int] = field(default_factory=dict)
    limit: int = 0
    skip: int = 0

    @property
    def projection(self) -> list[str] | None:
        """Projection for pymongo; an empty field list means every field."""

        return list(self.fields) or None

    @property
    def sort_spec(self) -> list[tuple[str, int]] | None:
        return list(self.sort.items()) or None


def _single_value(query: QueryMap, key: str) -> str | None:
    value = query.get(key)
    if isinstance(value, list):
        if not value:
            return None
        if len(value) > 1:
            raise QueryDecodeError(key, "expected a single value")
        return value[0]
    return value


def _decode_json(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise QueryDecodeError(key, f"malformed JSON ({exc})") from exc


def _decode_string_list(query: QueryMap, key: str) -> list[str]:
    raw = _single_value(query, key)
    if not raw:
        return []
    decoded = _decode_json(key, raw)
    if not isinstance(decoded, list) or not all(isinstance(item, str) for item in decoded):
        raise QueryDecodeError(key, "expected a JSON array of strings")
    return decoded


def _decode_sort(query: QueryMap) -> dict[str, int]:
    raw = _single_value(query, SORT_KEY)
    if not raw:
        return {}
    decoded = _decode_json(SORT_KEY, raw)
    if not isinstance(decoded, dict):
        raise QueryDecodeError(SORT_KEY, "expected a JSON object of field to direction")

    sort: dict[str, int] = {}
    for sort_field, direction in decoded.items():
        if isinstance(direction, bool) or not isinstance(direction, (int, str)):
            raise QueryDecodeError(SORT_KEY, f"unsupported direction {direction!r} for '{sort_field}'")
        normalized = direction.strip().lower() if isinstance(direction, str) else direction
        if normalized not in _SORT_DIRECTIONS:
            raise QueryDecodeError(SORT_KEY, f"unsupported direction {direction!r} for '{sort_field}'")
        sort[sort_field] = _SORT_DIRECTIONS[normalized]
    return sort


def _decode_count(query: QueryMap, key: str) -> int:
    raw = _single_value(query, key)
    if raw is None or raw.strip() == "":
        return 0
    text = raw.strip()
    if not text.isdecimal():
        raise QueryDecodeError(key, "expected a non-negative decimal integer")
    return int(text)


def modifiers(query: QueryMap) -> Modifiers:
    """Extract projection, population, sort and pagination directives from a query map."""

    return Modifiers(
        fields=_decode_string_list(query, FIELDS_KEY),
        populate=_decode_string_list(query, POPULATE_KEY),
        sort=_decode_sort(query),
        limit=_decode_count(query, LIMIT_KEY),
        skip=_decode_count(query, SKIP_KEY),
    )


def _filter_value(key: str, value: QueryValue) -> str:
    if isinstance(value, list):
        if len(value) != 1:
            raise QueryDecodeError(key, "expected a single value")
        return value[0]
    return value


def build_filter(
    query: QueryMap, *, reserved_keys: frozenset[str] = RESERVED_KEYS
) -> dict[str, Any]:
    """Build a MongoDB filter from every non-reserved key of the query map.

    `field__regex=/ab+c/` becomes `{"field": {"$regex": "ab+c"}}` (every `/` is dropped),
    `field__json=<json>` assigns the decoded value (Extended JSON such as `{"$oid": ...}`
    is understood), and any other key is a plain string equality match.
    """

    filter_: dict[str, Any] = {}
    for key, value in query.items():
        if key in reserved_keys:
            continue

        if key.endswith(REGEX_SUFFIX):
            pattern = _filter_value(key, value).replace("/", "")
            filter_[key[: -len(REGEX_SUFFIX)]] = {"$regex": pattern}
        elif key.endswith(JSON_SUFFIX):
            raw = _filter_value(key, value)
            try:
                decoded = json_util.loads(raw)
            except (ValueError, TypeError, BSONError) as exc:
                raise QueryDecodeError(key, f"malformed JSON ({exc})") from exc
            filter_[key[: -len(JSON_SUFFIX)]] = decoded
        else:
            filter_[key] = list(value) if isinstance(value, list) else value

    return filter_
