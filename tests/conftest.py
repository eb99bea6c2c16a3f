"""Shared fixtures for ninja-identity tests.

``FakeDatabase``/``FakeCollection`` stand in for Motor with just enough of the
driver surface (and filter language) for the stores: equality, ``$and``,
``$elemMatch``, ``$gt``/``$lt`` and array membership. Writes are stored as a
BSON round trip so that values come back the way the server returns them.
"""

from __future__ import annotations

import copy
from types import SimpleNamespace
from typing import Any

import pytest
from bson import CodecOptions, decode, encode
from bson.binary import UuidRepresentation
from ninja_identity import RoleStore, UserStore
from pymongo.errors import DuplicateKeyError

# Matches the client options ConnectionManager applies.
_CODEC_OPTIONS = CodecOptions(tz_aware=True, uuid_representation=UuidRepresentation.STANDARD)


def _stored(document: dict[str, Any]) -> dict[str, Any]:
    """What the server would hand back for *document*: encoded and decoded as BSON."""
    return decode(encode(document, codec_options=_CODEC_OPTIONS), codec_options=_CODEC_OPTIONS)


def _matches_value(actual: Any, expected: Any) -> bool:
    if isinstance(expected, dict) and expected and all(k.startswith("$") for k in expected):
        for op, arg in expected.items():
            if op == "$elemMatch":
                if not isinstance(actual, list) or not any(
                    isinstance(item, dict) and _matches(item, arg) for item in actual
                ):
                    return False
            elif op == "$gt":
                if actual is None or not actual > arg:
                    return False
            elif op == "$lt":
                if actual is None or not actual < arg:
                    return False
            elif op == "$in":
                if actual not in arg:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual
    return actual == expected


def _matches(doc: dict[str, Any], filters: dict[str, Any]) -> bool:
    for key, expected in filters.items():
        if key == "$and":
            if not all(_matches(doc, sub) for sub in expected):
                return False
        elif not _matches_value(doc.get(key), expected):
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs
        self._sort: list[tuple[str, int]] = []
        self._skip = 0
        self._limit = 0
        self.closed = False

    def sort(self, keys: list[tuple[str, int]]) -> FakeCursor:
        self._sort = list(keys)
        return self

    def skip(self, n: int) -> FakeCursor:
        self._skip = n
        return self

    def limit(self, n: int) -> FakeCursor:
        self._limit = n
        return self

    def _results(self) -> list[dict[str, Any]]:
        docs = list(self._docs)
        for field, direction in reversed(self._sort):
            docs.sort(key=lambda d: (d.get(field) is None, d.get(field)), reverse=direction < 0)
        docs = docs[self._skip :]
        if self._limit:
            docs = docs[: self._limit]
        return docs

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for doc in self._results():
            yield copy.deepcopy(doc)

    async def close(self) -> None:
        self.closed = True


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: dict[Any, dict[str, Any]] = {}
        self.last_cursor: FakeCursor | None = None

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        key = document["_id"]
        if key in self.docs:
            raise DuplicateKeyError(
                "E11000 duplicate key error", code=11000, details={"keyPattern": {"_id": 1}, "keyValue": {"_id": key}}
            )
        self.docs[key] = _stored(document)
        return SimpleNamespace(inserted_id=key)

    async def replace_one(self, filters: dict[str, Any], replacement: dict[str, Any]) -> SimpleNamespace:
        for key, doc in self.docs.items():
            if _matches(doc, filters):
                self.docs[key] = _stored(replacement)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, filters: dict[str, Any]) -> SimpleNamespace:
        for key, doc in list(self.docs.items()):
            if _matches(doc, filters):
                del self.docs[key]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def find_one(self, filters: dict[str, Any]) -> dict[str, Any] | None:
        for doc in self.docs.values():
            if _matches(doc, filters):
                return copy.deepcopy(doc)
        return None

    def find(self, filters: dict[str, Any] | None = None) -> FakeCursor:
        self.last_cursor = FakeCursor([d for d in self.docs.values() if _matches(d, filters or {})])
        return self.last_cursor

    async def count_documents(self, filters: dict[str, Any]) -> int:
        return sum(1 for d in self.docs.values() if _matches(d, filters))


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def user_store(database: FakeDatabase) -> UserStore:
    return UserStore(database)


@pytest.fixture
def role_store(database: FakeDatabase) -> RoleStore:
    return RoleStore(database)
