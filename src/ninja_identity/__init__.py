"""Ninja Identity: MongoDB stores for users, roles, claims, logins and tokens."""

from ninja_identity.config import MongoIdentityOptions, redact_url
from ninja_identity.connections import ConnectionManager
from ninja_identity.exceptions import (
    ConfigurationError,
    ConnectionFailedError,
    DuplicateEntityError,
    IdentityStoreError,
    InvalidConnectionURL,
    OperationCancelledError,
    PersistenceError,
    QueryError,
    StoreDisposedError,
)
from ninja_identity.keys import INT_KEY, OBJECT_ID_KEY, STRING_KEY, UUID_KEY, KeyConverter
from ninja_identity.models import (
    IdentityClaim,
    IdentityRole,
    IdentityUser,
    IdentityUserLogin,
    IdentityUserToken,
)
from ninja_identity.protocols import CancellationSignal, ClaimOwner, IdentityDocument
from ninja_identity.query import DocumentQuery
from ninja_identity.results import IdentityError, IdentityErrorDescriber, IdentityResult
from ninja_identity.stores.base import DocumentStore
from ninja_identity.stores.role import RoleStore
from ninja_identity.stores.user import UserStore

__all__ = [
    "INT_KEY",
    "OBJECT_ID_KEY",
    "STRING_KEY",
    "UUID_KEY",
    "CancellationSignal",
    "ClaimOwner",
    "ConfigurationError",
    "ConnectionFailedError",
    "ConnectionManager",
    "DocumentQuery",
    "DocumentStore",
    "DuplicateEntityError",
    "IdentityClaim",
    "IdentityDocument",
    "IdentityError",
    "IdentityErrorDescriber",
    "IdentityResult",
    "IdentityRole",
    "IdentityStoreError",
    "IdentityUser",
    "IdentityUserLogin",
    "IdentityUserToken",
    "InvalidConnectionURL",
    "KeyConverter",
    "MongoIdentityOptions",
    "OperationCancelledError",
    "PersistenceError",
    "QueryError",
    "RoleStore",
    "StoreDisposedError",
    "UserStore",
    "redact_url",
]
