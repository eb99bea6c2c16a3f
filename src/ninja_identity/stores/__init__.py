"""MongoDB-backed identity stores and their shared driver-error helpers."""

from __future__ import annotations

import logging

from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure

from ninja_identity.exceptions import (
    ConnectionFailedError,
    DuplicateEntityError,
    PersistenceError,
    QueryError,
)

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 1000
MIN_QUERY_LIMIT = 1


def _validate_limit(limit: int) -> int:
    """Validate and clamp the *limit* parameter for query methods.

    Raises ``ValueError`` for non-positive values.  Values exceeding
    ``MAX_QUERY_LIMIT`` (1000) are silently capped.
    """
    if limit < MIN_QUERY_LIMIT:
        raise ValueError(f"limit must be >= {MIN_QUERY_LIMIT}, got {limit}")
    return min(limit, MAX_QUERY_LIMIT)


def _validate_offset(offset: int) -> int:
    """Validate the *offset* parameter for query methods.

    Raises ``ValueError`` for negative values.
    """
    if offset < 0:
        raise ValueError(f"offset must be >= 0, got {offset}")
    return offset


def _is_duplicate_key_error(exc: BaseException) -> bool:
    """Check whether *exc* is a MongoDB duplicate-key error.

    PyMongo raises ``DuplicateKeyError`` for single writes but can also surface
    the same condition as a ``WriteError``/``OperationFailure`` with code 11000.
    """
    if isinstance(exc, DuplicateKeyError):
        return True
    return isinstance(exc, OperationFailure) and exc.code == 11000


def _is_connection_error(exc: BaseException) -> bool:
    """Check whether *exc* indicates a connection-level failure.

    ``AutoReconnect``, ``NetworkTimeout`` and ``ServerSelectionTimeoutError``
    all derive from ``ConnectionFailure``.
    """
    return isinstance(exc, ConnectionFailure)


def _duplicate_key_fields(exc: BaseException) -> tuple[str, ...]:
    """Return the index key names a duplicate-key error reported, if any."""
    details = getattr(exc, "details", None) or {}
    pattern = details.get("keyPattern") or details.get("keyValue") or {}
    return tuple(pattern)


def _translate_write_error(exc: Exception, *, entity_name: str, operation: str) -> PersistenceError:
    """Classify a driver exception raised by a write into a domain error."""
    if _is_duplicate_key_error(exc):
        return DuplicateEntityError(
            entity_name=entity_name,
            operation=operation,
            detail="A document with the same key already exists.",
            key_fields=_duplicate_key_fields(exc),
            cause=exc,
        )
    if _is_connection_error(exc):
        return ConnectionFailedError(
            entity_name=entity_name,
            operation=operation,
            detail=f"Database connection failed during {operation}.",
            cause=exc,
        )
    return PersistenceError(
        entity_name=entity_name,
        operation=operation,
        detail=f"{operation.capitalize()} operation failed.",
        cause=exc,
    )


def _translate_read_error(exc: Exception, *, entity_name: str, operation: str) -> PersistenceError:
    """Classify a driver exception raised by a read into a domain error."""
    if _is_connection_error(exc):
        logger.error("Mongo %s connection error for %s: %s", operation, entity_name, type(exc).__name__)
        return ConnectionFailedError(
            entity_name=entity_name,
            operation=operation,
            detail="Database connection failed during read.",
            cause=exc,
        )
    logger.error("Mongo %s failed for %s: %s", operation, entity_name, type(exc).__name__)
    return QueryError(
        entity_name=entity_name,
        operation=operation,
        detail="Query execution failed.",
        cause=exc,
    )
