"""Tests for driver error handling: writes become failed results, reads raise domain errors."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from bson.errors import InvalidId
from ninja_identity import (
    OBJECT_ID_KEY,
    ConnectionFailedError,
    IdentityError,
    IdentityErrorDescriber,
    IdentityRole,
    IdentityUser,
    PersistenceError,
    QueryError,
    RoleStore,
    UserStore,
)
from ninja_identity.stores import (
    _duplicate_key_fields,
    _is_connection_error,
    _is_duplicate_key_error,
)
from pymongo.errors import (
    AutoReconnect,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
    WriteError,
)


def _make_user_store(collection_mock: MagicMock, **kwargs) -> UserStore:
    """Create a UserStore with a mocked database and collection."""
    database = MagicMock()
    database.__getitem__ = MagicMock(return_value=collection_mock)
    return UserStore(database, **kwargs)


def _duplicate(field: str) -> DuplicateKeyError:
    return DuplicateKeyError(
        f"E11000 duplicate key error index: {field}_1",
        code=11000,
        details={"keyPattern": {field: 1}, "keyValue": {field: "X"}},
    )


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------


def test_is_duplicate_key_error():
    assert _is_duplicate_key_error(_duplicate("_id"))
    assert _is_duplicate_key_error(WriteError("dup", code=11000))
    assert not _is_duplicate_key_error(OperationFailure("other", code=2))
    assert not _is_duplicate_key_error(ValueError("nope"))


def test_is_connection_error():
    assert _is_connection_error(AutoReconnect("gone"))
    assert _is_connection_error(ServerSelectionTimeoutError("timeout"))
    assert not _is_connection_error(OperationFailure("bad"))


def test_duplicate_key_fields():
    assert _duplicate_key_fields(_duplicate("normalized_email")) == ("normalized_email",)
    assert _duplicate_key_fields(RuntimeError("no details")) == ()


# ---------------------------------------------------------------------------
# Write failures
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("field", "code"),
    [
        ("_id", "DuplicateId"),
        ("normalized_user_name", "DuplicateUserName"),
        ("normalized_email", "DuplicateEmail"),
    ],
)
async def test_create_duplicate_key_is_described_by_index(field, code):
    coll = MagicMock()
    coll.insert_one = AsyncMock(side_effect=_duplicate(field))
    store = _make_user_store(coll)

    result = await store.create(IdentityUser(user_name="alice"))

    assert result.succeeded is False
    assert result.errors[0].code == code


async def test_create_connection_error_fails_with_store_unavailable():
    coll = MagicMock()
    coll.insert_one = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
    store = _make_user_store(coll)

    result = await store.create(IdentityUser())

    assert result.succeeded is False
    assert result.errors[0].code == "StoreUnavailable"


async def test_update_unexpected_error_carries_message():
    coll = MagicMock()
    coll.replace_one = AsyncMock(side_effect=OperationFailure("document too large"))
    store = _make_user_store(coll)

    result = await store.update(IdentityUser())

    assert result.succeeded is False
    assert result.errors[0].code == "DefaultError"
    assert "document too large" in result.errors[0].description


async def test_delete_failure_is_logged_not_raised(caplog):
    coll = MagicMock()
    coll.delete_one = AsyncMock(side_effect=AutoReconnect("reset"))
    store = _make_user_store(coll)
    user = IdentityUser()

    result = await store.delete(user)

    assert result.succeeded is False
    assert f"Mongo delete failed for User (id={user.id})" in caplog.text


async def test_role_create_duplicate_name():
    coll = MagicMock()
    coll.insert_one = AsyncMock(side_effect=_duplicate("normalized_name"))
    database = MagicMock()
    database.__getitem__ = MagicMock(return_value=coll)
    store = RoleStore(database)

    result = await store.create(IdentityRole(name="admins"))

    assert result.errors[0].code == "DuplicateRoleName"


async def test_custom_describer_is_used():
    class LoudDescriber(IdentityErrorDescriber):
        def store_unavailable(self) -> IdentityError:
            return IdentityError(code="Down", description="DATABASE DOWN")

    coll = MagicMock()
    coll.insert_one = AsyncMock(side_effect=AutoReconnect("reset"))
    store = _make_user_store(coll, describer=LoudDescriber())

    result = await store.create(IdentityUser())

    assert result.errors == (IdentityError(code="Down", description="DATABASE DOWN"),)


async def test_describer_can_be_swapped_after_construction():
    coll = MagicMock()
    coll.insert_one = AsyncMock(side_effect=AutoReconnect("reset"))
    store = _make_user_store(coll)
    replacement = MagicMock(spec=IdentityErrorDescriber)
    replacement.describe.return_value = IdentityError(code="X", description="x")
    store.describer = replacement

    result = await store.create(IdentityUser())

    assert result.errors[0].code == "X"
    replacement.describe.assert_called_once()


# ---------------------------------------------------------------------------
# Read failures
# ---------------------------------------------------------------------------


async def test_find_by_id_connection_error_raises_connection_failed():
    coll = MagicMock()
    coll.find_one = AsyncMock(side_effect=AutoReconnect("reset"))
    store = _make_user_store(coll)

    with pytest.raises(ConnectionFailedError) as exc_info:
        await store.find_by_id("abc")
    assert exc_info.value.operation == "find_by_id"
    assert isinstance(exc_info.value.__cause__, AutoReconnect)


async def test_find_by_name_query_error_raises_query_error():
    coll = MagicMock()
    coll.find_one = AsyncMock(side_effect=OperationFailure("bad query"))
    store = _make_user_store(coll)

    with pytest.raises(QueryError) as exc_info:
        await store.find_by_name("ALICE")
    assert exc_info.value.entity_name == "User"
    assert isinstance(exc_info.value, PersistenceError)


async def test_malformed_document_raises_query_error():
    coll = MagicMock()
    coll.find_one = AsyncMock(return_value={"_id": "1", "access_failed_count": -5})
    store = _make_user_store(coll)

    with pytest.raises(QueryError):
        await store.find_by_id("1")


async def test_invalid_object_id_propagates_parse_error():
    coll = MagicMock()
    coll.find_one = AsyncMock(return_value=None)
    store = _make_user_store(coll, key_converter=OBJECT_ID_KEY)

    with pytest.raises(InvalidId):
        await store.find_by_id("not-an-object-id")
    coll.find_one.assert_not_called()
