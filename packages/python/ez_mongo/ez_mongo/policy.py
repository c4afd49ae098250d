"""Argument checks and shaping applied before an operation reaches the driver."""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

from pymongo import ASCENDING, DESCENDING

from .errors import ImmutableKeyError, MissingFieldsError, WholeDocumentReplacementError

_SORT_DIRECTIONS = {
    "asc": ASCENDING,
    "ascending": ASCENDING,
    "1": ASCENDING,
    "desc": DESCENDING,
    "descending": DESCENDING,
    "-1": DESCENDING,
}


def default_id() -> str:
    return uuid4().hex


def check_update(changes: Mapping[str, Any], *, safe_id: bool = True, safe_modify: bool = True) -> None:
    """Reject updates that touch ``_id`` or replace the whole document."""

    if safe_id:
        for operator in ("$set", "$unset"):
            modifier = changes.get(operator)
            if isinstance(modifier, Mapping) and "_id" in modifier:
                raise ImmutableKeyError("Attempt to modify _id with safe_id enabled")

    if safe_modify and any(not str(key).startswith("$") for key in changes):
        raise WholeDocumentReplacementError(
            "Attempt to modify whole document with safe_modify enabled"
        )


def normalize_fields(fields: Any) -> Optional[List[str]]:
    """Turn the accepted field formats into a plain list of field names.

    ``"num"`` -> ``["num"]``; ``{"num": 1, "char": 0}`` -> ``["num"]``;
    any other iterable is listed as-is; ``None`` stays ``None`` (all fields).
    """

    if fields is None:
        return None
    if isinstance(fields, str):
        return [fields]
    if isinstance(fields, Mapping):
        return [name for name, wanted in fields.items() if wanted]
    return list(fields)


def check_fields(fields: Optional[List[str]], *, require_fields: bool = False) -> None:
    if require_fields and not fields:
        raise MissingFieldsError(
            "No fields explicitly specified for MongoDB find operation when required"
        )


def projection(fields: Optional[List[str]]) -> Optional[Dict[str, int]]:
    if fields is None:
        return None
    return {name: 1 for name in fields}


def _direction(value: Any) -> int:
    direction = _SORT_DIRECTIONS.get(str(value).lower())
    if direction is None:
        raise ValueError(f"Unknown sort direction: {value!r}")
    return direction


def normalize_sort(sort: Any) -> Optional[List[Tuple[str, int]]]:
    """Convert the accepted sort formats into a pymongo sort list.

    Accepts a field name (ascending), a single ``(field, direction)`` pair, a
    list of pairs or field names, or a mapping of field to direction.
    Directions may be ``1``/``-1`` or ``"asc"``/``"desc"``.
    """

    if not sort:
        return None
    if isinstance(sort, str):
        return [(sort, ASCENDING)]
    if isinstance(sort, Mapping):
        return [(name, _direction(direction)) for name, direction in sort.items()]
    if (
        isinstance(sort, (list, tuple))
        and len(sort) == 2
        and isinstance(sort[0], str)
        and not isinstance(sort[1], (list, tuple))
        and str(sort[1]).lower() in _SORT_DIRECTIONS
    ):
        return [(sort[0], _direction(sort[1]))]

    result: List[Tuple[str, int]] = []
    for item in sort:
        if isinstance(item, str):
            result.append((item, ASCENDING))
        else:
            name, direction = item
            result.append((name, _direction(direction)))
    return result


def assign_ids(docs: Iterable[Dict[str, Any]], id_factory: Callable[[], Any] = default_id) -> None:
    """Give every document without an ``_id`` a freshly generated one."""

    for doc in docs:
        if "_id" not in doc:
            doc["_id"] = id_factory()
