"""Lazily evaluated, filterable view over a store's collection."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import aclosing
from typing import Any, Generic, TypeVar

from pymongo import ASCENDING, DESCENDING

from ninja_identity.stores import _translate_read_error, _validate_limit, _validate_offset

T = TypeVar("T")


class DocumentQuery(Generic[T]):
    """An immutable query builder over one collection.

    Builders return new queries; nothing touches the database until the
    query is consumed with ``async for``, :meth:`to_list`, :meth:`first` or
    :meth:`count`. Filters are raw MongoDB filter documents, so any predicate
    the driver supports can be expressed::

        locked = store.users.where({"lockout_end": {"$gt": now}}).sort("user_name")
        async for user in locked:
            ...
    """

    def __init__(
        self,
        collection: Any,
        factory: Callable[[Mapping[str, Any]], T],
        *,
        entity_name: str,
        filters: Mapping[str, Any] | None = None,
        sort: tuple[tuple[str, int], ...] = (),
        skip: int = 0,
        limit: int | None = None,
    ) -> None:
        self._collection = collection
        self._factory = factory
        self._entity_name = entity_name
        self._filters: dict[str, Any] = dict(filters or {})
        self._sort = sort
        self._skip = skip
        self._limit = limit

    @property
    def filters(self) -> dict[str, Any]:
        return dict(self._filters)

    def _copy(self, **changes: Any) -> DocumentQuery[T]:
        params: dict[str, Any] = {
            "filters": self._filters,
            "sort": self._sort,
            "skip": self._skip,
            "limit": self._limit,
        }
        params.update(changes)
        return DocumentQuery(self._collection, self._factory, entity_name=self._entity_name, **params)

    def where(self, filters: Mapping[str, Any]) -> DocumentQuery[T]:
        """Narrow the query; successive calls are combined with ``$and``."""
        if not filters:
            return self
        if not self._filters:
            return self._copy(filters=dict(filters))
        return self._copy(filters={"$and": [self._filters, dict(filters)]})

    def sort(self, field: str, descending: bool = False) -> DocumentQuery[T]:
        return self._copy(sort=(*self._sort, (field, DESCENDING if descending else ASCENDING)))

    def skip(self, offset: int) -> DocumentQuery[T]:
        return self._copy(skip=_validate_offset(offset))

    def limit(self, limit: int) -> DocumentQuery[T]:
        """Cap the number of results (1-1000). Values above 1000 are capped."""
        return self._copy(limit=_validate_limit(limit))

    def _cursor(self) -> Any:
        cursor = self._collection.find(self._filters)
        if self._sort:
            cursor = cursor.sort(list(self._sort))
        if self._skip:
            cursor = cursor.skip(self._skip)
        if self._limit is not None:
            cursor = cursor.limit(self._limit)
        return cursor

    async def __aiter__(self) -> AsyncIterator[T]:
        cursor = self._cursor()
        try:
            async for doc in cursor:
                yield self._factory(doc)
        except Exception as exc:
            raise _translate_read_error(exc, entity_name=self._entity_name, operation="query") from exc
        finally:
            await cursor.close()

    async def to_list(self) -> list[T]:
        return [item async for item in self]

    async def first(self) -> T | None:
        async with aclosing(aiter(self.limit(1))) as items:
            async for item in items:
                return item
        return None

    async def count(self) -> int:
        """Count matching documents, ignoring sort/skip/limit."""
        try:
            return await self._collection.count_documents(self._filters)
        except Exception as exc:
            raise _translate_read_error(exc, entity_name=self._entity_name, operation="count") from exc

    def __repr__(self) -> str:
        return f"DocumentQuery({self._entity_name}, filters={self._filters!r})"
