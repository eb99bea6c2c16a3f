"""Capability protocols the generic stores are written against."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ninja_identity.models import IdentityClaim


@runtime_checkable
class CancellationSignal(Protocol):
    """Anything with an ``is_set()`` flag, e.g. ``asyncio.Event`` or ``threading.Event``."""

    def is_set(self) -> bool: ...


@runtime_checkable
class IdentityDocument(Protocol):
    """A document addressable by ``id`` that can round-trip through BSON."""

    @property
    def id(self) -> Any: ...

    def to_document(self) -> dict[str, Any]: ...


@runtime_checkable
class ClaimOwner(Protocol):
    """A document carrying an embedded claim list."""

    @property
    def claims(self) -> tuple[IdentityClaim, ...]: ...

    def add_claim(self, claim: IdentityClaim) -> bool: ...

    def remove_claim(self, claim: IdentityClaim) -> int: ...

    def replace_claim(self, claim: IdentityClaim, new_claim: IdentityClaim) -> bool: ...
