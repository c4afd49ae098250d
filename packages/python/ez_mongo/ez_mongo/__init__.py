"""Ergonomic async MongoDB wrapper: simplified CRUD verbs over one shared connection.

Example usage:

    from ez_mongo import EzMongo

    db = EzMongo(database="app", lazy_connect=True)

    async def rename(idea_id: str, title: str) -> int:
        return await db.update_one("ideas", idea_id, {"$set": {"title": title}})
"""

from .client import EzMongo
from .errors import (
    DatabaseConnectionError,
    DisabledError,
    EzMongoError,
    ImmutableKeyError,
    InvalidConnectionTargetError,
    MissingDatabaseNameError,
    MissingFieldsError,
    NoCallbackError,
    WholeDocumentReplacementError,
)
from .guard import ConnectionGuard, ConnectionState
from .selectors import ById, ByKeys, ByPredicate, search_filter, to_selector
from .settings import EzMongoSettings, build_uri

__all__ = [
    "EzMongo",
    "EzMongoSettings",
    "build_uri",
    "ConnectionGuard",
    "ConnectionState",
    "ById",
    "ByKeys",
    "ByPredicate",
    "search_filter",
    "to_selector",
    "EzMongoError",
    "MissingDatabaseNameError",
    "InvalidConnectionTargetError",
    "DisabledError",
    "DatabaseConnectionError",
    "ImmutableKeyError",
    "WholeDocumentReplacementError",
    "MissingFieldsError",
    "NoCallbackError",
]
