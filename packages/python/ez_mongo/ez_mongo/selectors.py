"""Resolution of the selector argument shared by every read/update/delete verb.

A selector is one of:

    ById(key)          -> {"_id": key}
    ByKeys([k1, k2])   -> {"_id": {"$in": [k1, k2]}}
    ByPredicate(query) -> query, unchanged

Callers may build these explicitly or pass a plain value and let
``to_selector`` infer the variant: lists and tuples are always read as a list
of keys, mappings as a predicate, ``None`` as "match everything" and anything
else as a single key. A key that is itself a sequence has to be wrapped in
``ById`` by the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Union

from bson import ObjectId


@dataclass(frozen=True)
class ById:
    key: Any

    def to_filter(self) -> Dict[str, Any]:
        return {"_id": self.key}


@dataclass(frozen=True)
class ByKeys:
    keys: List[Any] = field(default_factory=list)

    def to_filter(self) -> Dict[str, Any]:
        return {"_id": {"$in": list(self.keys)}}


@dataclass(frozen=True)
class ByPredicate:
    query: Mapping[str, Any] = field(default_factory=dict)

    def to_filter(self) -> Dict[str, Any]:
        return dict(self.query)


Selector = Union[ById, ByKeys, ByPredicate]


def to_selector(value: Any = None) -> Selector:
    """Infer the selector variant for a raw argument."""

    if isinstance(value, (ById, ByKeys, ByPredicate)):
        return value
    if value is None:
        return ByPredicate({})
    if isinstance(value, ObjectId):
        return ById(value)
    if isinstance(value, (list, tuple)):
        return ByKeys(list(value))
    if isinstance(value, Mapping):
        return ByPredicate(value)
    return ById(value)


def search_filter(value: Any = None) -> Dict[str, Any]:
    """Return the driver filter document for a selector or raw argument."""

    return to_selector(value).to_filter()
