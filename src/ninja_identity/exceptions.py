"""Domain exceptions for the identity stores.

Driver exceptions raised on read paths are caught and re-raised as one of the
``PersistenceError`` subclasses so that callers never see raw MongoDB errors.
Write paths convert the same errors into failed ``IdentityResult`` values.
"""

from __future__ import annotations


class IdentityStoreError(Exception):
    """Base exception for everything raised by ``ninja_identity``."""


class ConfigurationError(IdentityStoreError):
    """Raised when store configuration is missing or invalid."""


class InvalidConnectionURL(ConfigurationError, ValueError):
    """Raised when a connection URL is malformed or missing required components."""


class StoreDisposedError(IdentityStoreError):
    """Raised when a store is used after ``dispose()`` was called."""

    def __init__(self, store_name: str) -> None:
        self.store_name = store_name
        super().__init__(f"Cannot access a disposed store: {store_name}")


class OperationCancelledError(IdentityStoreError):
    """Raised when the caller's cancellation signal was already set on entry."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} was cancelled")


class PersistenceError(IdentityStoreError):
    """Base exception for all database-level errors.

    Attributes:
        entity_name: The name of the entity/collection involved.
        operation: The store operation that failed (e.g. ``"create"``, ``"find_by_id"``).
        detail: A sanitised description of what went wrong.
    """

    def __init__(
        self,
        *,
        entity_name: str,
        operation: str,
        detail: str,
        cause: Exception | None = None,
    ) -> None:
        self.entity_name = entity_name
        self.operation = operation
        self.detail = detail
        msg = f"[{entity_name}] {operation} failed: {detail}"
        super().__init__(msg)
        if cause is not None:
            self.__cause__ = cause


class DuplicateEntityError(PersistenceError):
    """Raised when a write violates a uniqueness constraint.

    ``key_fields`` holds the offending index keys when the driver reports them.
    """

    def __init__(self, *, key_fields: tuple[str, ...] = (), **kwargs) -> None:
        self.key_fields = key_fields
        super().__init__(**kwargs)


class ConnectionFailedError(PersistenceError):
    """Raised when the store cannot reach the database."""


class QueryError(PersistenceError):
    """Raised for failed reads, bad filter expressions, or schema mismatches."""
