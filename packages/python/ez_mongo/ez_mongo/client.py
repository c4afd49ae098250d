"""Async MongoDB facade with simplified CRUD verbs.

Example usage:

    from ez_mongo import EzMongo

    async def main():
        async with EzMongo(database="app") as db:
            await db.insert("ideas", {"title": "first"})
            ideas = await db.find_multiple("ideas", {}, ["title"], [("title", "asc")])
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import WriteConcern

from .errors import MissingDatabaseNameError
from .guard import ConnectionGuard, ConnectionState
from .policy import (
    assign_ids,
    check_fields,
    check_update,
    default_id,
    normalize_fields,
    normalize_sort,
    projection,
)
from .selectors import search_filter
from .settings import EzMongoSettings, build_uri

Document = Dict[str, Any]


class EzMongo:
    """One logical MongoDB database, connected on demand and shared by all verbs."""

    def __init__(
        self,
        settings: Optional[EzMongoSettings] = None,
        *,
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
        id_factory: Callable[[], Any] = default_id,
        **overrides: Any,
    ):
        if settings is None:
            settings = EzMongoSettings(**overrides)
        elif overrides:
            settings = EzMongoSettings.model_validate({**settings.model_dump(), **overrides})

        if not settings.database:
            raise MissingDatabaseNameError("Missing required database name")

        self.settings = settings
        self.uri = build_uri(settings)
        self._client_factory = client_factory
        self._id_factory = id_factory

        if settings.log_connection:
            logger.info(
                "MongoDB will connect using {uri}",
                uri=build_uri(settings, mask_password=True),
            )

        self._guard: ConnectionGuard[AsyncIOMotorDatabase] = ConnectionGuard(
            self._open,
            self._close_handle,
            name=settings.database,
            disabled=False,
            log_connection=settings.log_connection,
            log_pending=settings.log_pending,
        )

        if settings.disabled:
            self.disable()
        elif not settings.lazy_connect:
            self._connect_if_loop_running()

    def _connect_if_loop_running(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # no loop yet: the first operation opens the connection instead
            return
        self._guard.open()

    async def _open(self) -> AsyncIOMotorDatabase:
        client = self._client_factory(self.uri, **self.settings.connection_options)
        try:
            await client.admin.command("ping")
        except Exception:
            client.close()
            raise
        return client[self.settings.database]

    @staticmethod
    def _close_handle(db: AsyncIOMotorDatabase) -> None:
        db.client.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._guard.state

    @property
    def guard(self) -> ConnectionGuard[AsyncIOMotorDatabase]:
        return self._guard

    @property
    def disabled(self) -> bool:
        return self._guard.disabled

    async def connect(self) -> AsyncIOMotorDatabase:
        """Open the connection now and return the database handle."""

        return await self._guard.get()

    async def close(self) -> None:
        await self._guard.close()

    def enable(self) -> bool:
        return self._guard.enable()

    def disable(self) -> bool:
        return self._guard.disable()

    async def __aenter__(self) -> "EzMongo":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Native handles
    # ------------------------------------------------------------------

    async def db(self) -> AsyncIOMotorDatabase:
        """Return the underlying driver database."""

        return await self._guard.get()

    async def collection(self, name: str, *, acknowledged: bool = True) -> AsyncIOMotorCollection:
        """Return the underlying driver collection ``name``."""

        db = await self._guard.get()
        collection = db[name]
        if not acknowledged:
            collection = collection.with_options(write_concern=WriteConcern(w=0))
        return collection

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(
        self,
        collection_name: str,
        docs: Union[Document, List[Document]],
        *,
        acknowledged: bool = True,
    ) -> Any:
        """Insert one document or a list of them.

        Returns the ``_id`` of a single document, or the list of ``_id``s when
        a list was given. Unacknowledged inserts return ``None``.
        """

        multiple = isinstance(docs, list)
        batch = docs if multiple else [docs]

        if self.settings.use_short_id:
            assign_ids(batch, self._id_factory)

        collection = await self.collection(collection_name, acknowledged=acknowledged)
        result = await collection.insert_many(batch)

        if not acknowledged:
            return None
        inserted_ids = list(result.inserted_ids)
        return inserted_ids if multiple else inserted_ids[0]

    async def update_one(self, collection_name: str, selector: Any, changes: Document, *, acknowledged: bool = True) -> Optional[int]:
        """Update a single document; return 1 if it was modified, 0 if not."""

        return await self._modify(collection_name, selector, changes, multiple=False, upsert=False, acknowledged=acknowledged)

    async def update_multiple(self, collection_name: str, selector: Any, changes: Document, *, acknowledged: bool = True) -> Optional[int]:
        """Update every matching document; return how many were modified."""

        return await self._modify(collection_name, selector, changes, multiple=True, upsert=False, acknowledged=acknowledged)

    # kept for callers of the older names
    modify_one = update_one
    modify_multiple = update_multiple

    async def upsert_one(self, collection_name: str, selector: Any, changes: Document, *, acknowledged: bool = True) -> Optional[int]:
        """Update or insert a single document; return 1 if modified or inserted."""

        return await self._modify(collection_name, selector, changes, multiple=False, upsert=True, acknowledged=acknowledged)

    async def upsert_multiple(self, collection_name: str, selector: Any, changes: Document, *, acknowledged: bool = True) -> Optional[int]:
        """Update every matching document, inserting one if none match."""

        return await self._modify(collection_name, selector, changes, multiple=True, upsert=True, acknowledged=acknowledged)

    async def _modify(
        self,
        collection_name: str,
        selector: Any,
        changes: Document,
        *,
        multiple: bool,
        upsert: bool,
        acknowledged: bool,
    ) -> Optional[int]:
        check_update(changes, safe_id=self.settings.safe_id, safe_modify=self.settings.safe_modify)

        collection = await self.collection(collection_name, acknowledged=acknowledged)
        query = search_filter(selector)
        if multiple:
            result = await collection.update_many(query, changes, upsert=upsert)
        else:
            result = await collection.update_one(query, changes, upsert=upsert)

        if not acknowledged:
            return None
        affected = result.modified_count or 0
        if upsert and result.upserted_id is not None:
            affected += 1
        return affected

    async def remove_one(self, collection_name: str, selector: Any, *, acknowledged: bool = True) -> Optional[int]:
        """Remove a single document; return 1 if removed, 0 if not."""

        return await self._remove(collection_name, selector, multiple=False, acknowledged=acknowledged)

    async def remove_multiple(self, collection_name: str, selector: Any, *, acknowledged: bool = True) -> Optional[int]:
        """Remove every matching document; return how many were removed."""

        return await self._remove(collection_name, selector, multiple=True, acknowledged=acknowledged)

    async def _remove(self, collection_name: str, selector: Any, *, multiple: bool, acknowledged: bool) -> Optional[int]:
        collection = await self.collection(collection_name, acknowledged=acknowledged)
        query = search_filter(selector)
        if multiple:
            result = await collection.delete_many(query)
        else:
            result = await collection.delete_one(query)

        if not acknowledged:
            return None
        return result.deleted_count or 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_one(
        self,
        collection_name: str,
        selector: Any = None,
        fields: Any = None,
        sort: Any = None,
    ) -> Optional[Document]:
        """Return the first matching document (after sorting), or ``None``."""

        docs = await self._find(collection_name, selector, fields, sort, limit=1, skip=None)
        return docs[0] if docs else None

    async def find_multiple(
        self,
        collection_name: str,
        selector: Any = None,
        fields: Any = None,
        sort: Any = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
    ) -> List[Document]:
        """Return every matching document; an empty list when nothing matches."""

        return await self._find(collection_name, selector, fields, sort, limit=limit, skip=skip)

    async def _find(
        self,
        collection_name: str,
        selector: Any,
        fields: Any,
        sort: Any,
        *,
        limit: Optional[int],
        skip: Optional[int],
    ) -> List[Document]:
        field_names = normalize_fields(fields)
        check_fields(field_names, require_fields=self.settings.require_fields)
        sort_spec = normalize_sort(sort)

        collection = await self.collection(collection_name)

        options: Dict[str, Any] = {}
        if field_names is not None:
            options["projection"] = projection(field_names)
        if sort_spec:
            options["sort"] = sort_spec
        if limit:
            options["limit"] = limit
        if skip:
            options["skip"] = skip

        cursor = collection.find(search_filter(selector), **options)
        return await cursor.to_list(length=None)

    async def count(self, collection_name: str, selector: Any = None) -> int:
        """Count the documents matching ``selector`` (all of them when omitted)."""

        collection = await self.collection(collection_name)
        return await collection.count_documents(search_filter(selector))
