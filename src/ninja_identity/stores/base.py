"""Generic single-collection store shared by the user and role stores."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from ninja_identity.exceptions import OperationCancelledError, StoreDisposedError
from ninja_identity.keys import STRING_KEY, KeyConverter
from ninja_identity.models import IdentityDocumentBase
from ninja_identity.protocols import CancellationSignal
from ninja_identity.query import DocumentQuery
from ninja_identity.results import IdentityErrorDescriber, IdentityResult
from ninja_identity.stores import _translate_read_error, _translate_write_error

logger = logging.getLogger(__name__)

TDocument = TypeVar("TDocument", bound=IdentityDocumentBase)


def _require(value: Any, name: str) -> None:
    """Raise ``ValueError`` when a required argument is ``None``."""
    if value is None:
        raise ValueError(f"{name} must not be None")


def _require_text(value: str | None, name: str) -> None:
    """Raise ``ValueError`` when a required string argument is ``None`` or blank."""
    if value is None or not value.strip():
        raise ValueError(f"{name} must not be empty")


class DocumentStore(Generic[TDocument]):
    """Maps identity operations onto one MongoDB collection.

    Every operation is either an in-memory change to the entity passed in or
    a single round trip keyed by ``_id``. Nothing is cached and nothing is
    retried. Concurrent ``update`` calls on the same document are
    last-writer-wins.

    Entry checks run in a fixed order before any state is touched: the
    caller's cancellation signal, then the disposed flag, then argument
    preconditions (``ValueError``).

    Args:
        database: A Motor database. The store does not own its client.
        collection_name: The collection holding this store's documents.
        document_factory: Builds an entity from a raw document.
        describer: Turns write failures into ``IdentityError`` values.
        key_converter: Converts identifiers to and from strings.
    """

    entity_name = "Document"
    default_collection_name = "documents"

    def __init__(
        self,
        database: Any,
        collection_name: str | None = None,
        *,
        document_factory: Callable[[Mapping[str, Any]], TDocument],
        describer: IdentityErrorDescriber | None = None,
        key_converter: KeyConverter[Any] = STRING_KEY,
    ) -> None:
        if database is None:
            raise ValueError("database must not be None")
        collection_name = self.default_collection_name if collection_name is None else collection_name
        _require_text(collection_name, "collection_name")
        self._database = database
        self._collection_name = collection_name
        self._document_factory = document_factory
        self._key_converter = key_converter
        self.describer = describer or IdentityErrorDescriber()
        self._disposed = False

    # -- lifecycle ------------------------------------------------------------

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def key_converter(self) -> KeyConverter[Any]:
        return self._key_converter

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Mark the store unusable. Idempotent; the database client is left open."""
        self._disposed = True

    close = dispose

    def __enter__(self) -> DocumentStore[TDocument]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def _collection(self) -> Any:
        return self._database[self._collection_name]

    def _check(self, operation: str, cancellation: CancellationSignal | None) -> None:
        if cancellation is not None and cancellation.is_set():
            raise OperationCancelledError(operation)
        if self._disposed:
            raise StoreDisposedError(type(self).__name__)

    # -- key conversion -------------------------------------------------------

    def convert_id_to_string(self, key: Any) -> str | None:
        """Return the string form of *key*, or ``None`` for the key type's default."""
        return self._key_converter.to_string(key)

    def convert_id_from_string(self, value: str | None) -> Any:
        """Parse *value* into a native key; ``None`` yields the key type's default.

        Parse errors propagate unchanged.
        """
        return self._key_converter.from_string(value)

    # -- queryable surface ----------------------------------------------------

    @property
    def query(self) -> DocumentQuery[TDocument]:
        """The whole collection as a lazily evaluated :class:`DocumentQuery`."""
        self._check("query", None)
        return DocumentQuery(self._collection(), self._document_factory, entity_name=self.entity_name)

    # -- writes ---------------------------------------------------------------

    async def create(self, entity: TDocument, *, cancellation: CancellationSignal | None = None) -> IdentityResult:
        """Insert *entity* as a new document. Its ``id`` must already be set."""
        self._check("create", cancellation)
        _require(entity, "entity")
        try:
            await self._collection().insert_one(entity.to_document())
        except Exception as exc:
            return self._write_failed(exc, "create", entity)
        return IdentityResult.success()

    async def update(self, entity: TDocument, *, cancellation: CancellationSignal | None = None) -> IdentityResult:
        """Replace the stored document matching ``entity.id``.

        A missing document is not an error; the call is a no-op.
        """
        self._check("update", cancellation)
        _require(entity, "entity")
        try:
            result = await self._collection().replace_one({"_id": entity.id}, entity.to_document())
        except Exception as exc:
            return self._write_failed(exc, "update", entity)
        if result.matched_count == 0:
            logger.debug("Mongo update matched no %s document (id=%s)", self.entity_name, entity.id)
        return IdentityResult.success()

    async def delete(self, entity: TDocument, *, cancellation: CancellationSignal | None = None) -> IdentityResult:
        """Delete the stored document matching ``entity.id``."""
        self._check("delete", cancellation)
        _require(entity, "entity")
        try:
            result = await self._collection().delete_one({"_id": entity.id})
        except Exception as exc:
            return self._write_failed(exc, "delete", entity)
        if result.deleted_count == 0:
            logger.debug("Mongo delete matched no %s document (id=%s)", self.entity_name, entity.id)
        return IdentityResult.success()

    def _write_failed(self, exc: Exception, operation: str, entity: TDocument) -> IdentityResult:
        error = _translate_write_error(exc, entity_name=self.entity_name, operation=operation)
        logger.error(
            "Mongo %s failed for %s (id=%s): %s", operation, self.entity_name, entity.id, type(exc).__name__
        )
        return IdentityResult.failed(self.describer.describe(error))

    # -- reads ----------------------------------------------------------------

    async def find_by_id(self, id: str, *, cancellation: CancellationSignal | None = None) -> TDocument | None:
        """Look up a document by the string form of its identifier."""
        self._check("find_by_id", cancellation)
        _require_text(id, "id")
        key = self.convert_id_from_string(id)
        return await self._find_one({"_id": key}, "find_by_id")

    async def _find_one(self, filters: dict[str, Any], operation: str) -> TDocument | None:
        try:
            doc = await self._collection().find_one(filters)
            return self._document_factory(doc) if doc is not None else None
        except Exception as exc:
            raise _translate_read_error(exc, entity_name=self.entity_name, operation=operation) from exc

    async def _find_many(self, filters: dict[str, Any], operation: str) -> list[TDocument]:
        try:
            return [self._document_factory(doc) async for doc in self._collection().find(filters)]
        except Exception as exc:
            raise _translate_read_error(exc, entity_name=self.entity_name, operation=operation) from exc

    def __repr__(self) -> str:
        state = " disposed" if self._disposed else ""
        return f"<{type(self).__name__} collection={self._collection_name!r}{state}>"
