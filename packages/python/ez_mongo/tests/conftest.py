import asyncio
import copy
from types import SimpleNamespace

import pytest
from bson import ObjectId

from ez_mongo import EzMongo

TEST_DB = "ezMongoTestDb"

FIXTURE = {
    "col1": {
        "docA": {"num": 1, "char": "A"},
        "docB": {"num": 2, "char": "B"},
        "docC": {"num": 3, "char": "C"},
    },
    "col2": {
        "docX": {"num": 77, "char": "X"},
        "docY": {"num": 88, "char": "Y"},
        "docZ": {"num": 99, "char": "Z"},
    },
}


# ---------------------------------------------------------------------------
# In-memory stand-in for the Motor client, just enough for the wrapper's calls
# ---------------------------------------------------------------------------


def _matches_condition(value, condition):
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, arg in condition.items():
            if op == "$in" and value not in arg:
                return False
            if op == "$nin" and value in arg:
                return False
            if op == "$ne" and value == arg:
                return False
            if op == "$gt" and not (value is not None and value > arg):
                return False
            if op == "$gte" and not (value is not None and value >= arg):
                return False
            if op == "$lt" and not (value is not None and value < arg):
                return False
            if op == "$lte" and not (value is not None and value <= arg):
                return False
        return True
    return value == condition


def _matches(doc, query):
    return all(_matches_condition(doc.get(key), condition) for key, condition in query.items())


def _apply_update(doc, changes):
    for op, fields in changes.items():
        if op == "$set":
            doc.update(fields)
        elif op == "$unset":
            for name in fields:
                doc.pop(name, None)
        elif op == "$inc":
            for name, amount in fields.items():
                doc[name] = doc.get(name, 0) + amount
        elif op == "$setOnInsert":
            continue
        else:
            raise NotImplementedError(op)


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    async def to_list(self, length=None):
        await asyncio.sleep(0)
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    def __init__(self, name, docs, write_concern=None):
        self.name = name
        self._docs = docs
        self.write_concern = write_concern

    def with_options(self, write_concern=None, **_):
        return FakeCollection(self.name, self._docs, write_concern=write_concern)

    @property
    def acknowledged(self):
        return self.write_concern is None or self.write_concern.acknowledged

    async def insert_many(self, docs):
        await asyncio.sleep(0)
        ids = []
        for doc in docs:
            stored = copy.deepcopy(doc)
            stored.setdefault("_id", ObjectId())
            doc.setdefault("_id", stored["_id"])
            self._docs.append(stored)
            ids.append(stored["_id"])
        return SimpleNamespace(inserted_ids=ids, acknowledged=self.acknowledged)

    async def _update(self, query, changes, upsert, multiple):
        await asyncio.sleep(0)
        modified = 0
        matched = [doc for doc in self._docs if _matches(doc, query)]
        if not multiple:
            matched = matched[:1]
        for doc in matched:
            before = copy.deepcopy(doc)
            _apply_update(doc, changes)
            if doc != before:
                modified += 1
        upserted_id = None
        if upsert and not matched:
            doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
            doc.update(changes.get("$setOnInsert", {}))
            _apply_update(doc, changes)
            doc.setdefault("_id", ObjectId())
            self._docs.append(doc)
            upserted_id = doc["_id"]
        return SimpleNamespace(
            matched_count=len(matched),
            modified_count=modified,
            upserted_id=upserted_id,
            acknowledged=self.acknowledged,
        )

    async def update_one(self, query, changes, upsert=False):
        return await self._update(query, changes, upsert, multiple=False)

    async def update_many(self, query, changes, upsert=False):
        return await self._update(query, changes, upsert, multiple=True)

    async def _delete(self, query, multiple):
        await asyncio.sleep(0)
        matched = [doc for doc in self._docs if _matches(doc, query)]
        if not multiple:
            matched = matched[:1]
        for doc in matched:
            self._docs.remove(doc)
        return SimpleNamespace(deleted_count=len(matched), acknowledged=self.acknowledged)

    async def delete_one(self, query):
        return await self._delete(query, multiple=False)

    async def delete_many(self, query):
        return await self._delete(query, multiple=True)

    def find(self, query, projection=None, sort=None, limit=0, skip=0):
        docs = [copy.deepcopy(doc) for doc in self._docs if _matches(doc, query)]
        for key, direction in reversed(sort or []):
            docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        docs = docs[skip:]
        if limit:
            docs = docs[:limit]
        if projection:
            wanted = set(projection) | {"_id"}
            docs = [{k: v for k, v in doc.items() if k in wanted} for doc in docs]
        return FakeCursor(docs)

    async def count_documents(self, query):
        await asyncio.sleep(0)
        return sum(1 for doc in self._docs if _matches(doc, query))


class FakeDatabase:
    def __init__(self, client, name, collections):
        self.client = client
        self.name = name
        self._collections = collections

    def __getitem__(self, name):
        return FakeCollection(name, self._collections.setdefault(name, []))


class FakeAdmin:
    def __init__(self, motor):
        self._motor = motor

    async def command(self, name):
        await asyncio.sleep(0)
        self._motor.commands.append(name)
        if self._motor.fail is not None:
            raise self._motor.fail
        return {"ok": 1.0}


class FakeClient:
    def __init__(self, motor, uri, options):
        self.uri = uri
        self.options = options
        self.closed = False
        self.admin = FakeAdmin(motor)
        self._motor = motor

    def __getitem__(self, name):
        return FakeDatabase(self, name, self._motor.store.setdefault(name, {}))

    def close(self):
        self.closed = True


class FakeMotor:
    """Client factory; data lives on the factory so it survives reconnects."""

    def __init__(self):
        self.clients = []
        self.commands = []
        self.store = {}
        self.fail = None

    def __call__(self, uri, **options):
        client = FakeClient(self, uri, options)
        self.clients.append(client)
        return client

    def docs(self, collection, database=TEST_DB):
        return self.store.setdefault(database, {}).setdefault(collection, [])

    def seed(self, database=TEST_DB):
        for collection, docs in FIXTURE.items():
            stored = self.docs(collection, database)
            stored.clear()
            for key, doc in docs.items():
                stored.append(dict(doc, _id=key))


@pytest.fixture()
def motor_double():
    motor = FakeMotor()
    motor.seed()
    return motor


@pytest.fixture()
def ez(motor_double):
    return EzMongo(
        database=TEST_DB,
        lazy_connect=True,
        log_connection=False,
        client_factory=motor_double,
    )
