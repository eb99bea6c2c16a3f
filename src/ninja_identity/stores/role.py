"""Role store: role names and role claims."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from ninja_identity.config import MongoIdentityOptions
from ninja_identity.connections import ConnectionManager, options_from_url
from ninja_identity.keys import STRING_KEY, KeyConverter
from ninja_identity.models import IdentityClaim, IdentityRole
from ninja_identity.protocols import CancellationSignal
from ninja_identity.query import DocumentQuery
from ninja_identity.results import IdentityErrorDescriber
from ninja_identity.stores.base import DocumentStore, _require, _require_text

TRole = TypeVar("TRole", bound=IdentityRole)


class RoleStore(DocumentStore[TRole]):
    """MongoDB store for :class:`~ninja_identity.models.IdentityRole` documents."""

    entity_name = "Role"
    default_collection_name = "roles"

    def __init__(
        self,
        database: Any,
        collection_name: str | None = None,
        *,
        document_factory: Callable[[Mapping[str, Any]], TRole] | None = None,
        describer: IdentityErrorDescriber | None = None,
        key_converter: KeyConverter[Any] = STRING_KEY,
    ) -> None:
        super().__init__(
            database,
            collection_name,
            document_factory=document_factory or IdentityRole.from_document,
            describer=describer,
            key_converter=key_converter,
        )

    @classmethod
    def from_options(
        cls, options: MongoIdentityOptions, manager: ConnectionManager | None = None, **kwargs: Any
    ) -> RoleStore[Any]:
        """Build a store on ``options.role_collection_name``."""
        manager = manager or ConnectionManager()
        return cls(manager.get_database(options), options.role_collection_name, **kwargs)

    @classmethod
    def from_url(
        cls,
        connection_string: str,
        collection_name: str | None = None,
        manager: ConnectionManager | None = None,
        **kwargs: Any,
    ) -> RoleStore[Any]:
        collection_name = collection_name or cls.default_collection_name
        options = options_from_url(connection_string, role_collection_name=collection_name)
        return cls.from_options(options, manager, **kwargs)

    @property
    def roles(self) -> DocumentQuery[TRole]:
        return self.query

    async def get_role_id(self, role: TRole, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_role_id", cancellation)
        _require(role, "role")
        return self.convert_id_to_string(role.id)

    async def get_role_name(self, role: TRole, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_role_name", cancellation)
        _require(role, "role")
        return role.name

    async def set_role_name(
        self, role: TRole, role_name: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_role_name", cancellation)
        _require(role, "role")
        role.name = role_name

    async def get_normalized_role_name(
        self, role: TRole, *, cancellation: CancellationSignal | None = None
    ) -> str | None:
        self._check("get_normalized_role_name", cancellation)
        _require(role, "role")
        return role.normalized_name

    async def set_normalized_role_name(
        self, role: TRole, normalized_name: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_normalized_role_name", cancellation)
        _require(role, "role")
        role.normalized_name = normalized_name

    async def find_by_name(
        self, normalized_role_name: str, *, cancellation: CancellationSignal | None = None
    ) -> TRole | None:
        self._check("find_by_name", cancellation)
        _require_text(normalized_role_name, "normalized_role_name")
        return await self._find_one({"normalized_name": normalized_role_name}, "find_by_name")

    async def get_claims(self, role: TRole, *, cancellation: CancellationSignal | None = None) -> list[IdentityClaim]:
        self._check("get_claims", cancellation)
        _require(role, "role")
        return list(role.claims)

    async def add_claim(
        self, role: TRole, claim: IdentityClaim, *, cancellation: CancellationSignal | None = None
    ) -> None:
        """Add *claim* unless an equal claim is already on *role*."""
        self._check("add_claim", cancellation)
        _require(role, "role")
        _require(claim, "claim")
        role.add_claim(claim)

    async def remove_claim(
        self, role: TRole, claim: IdentityClaim, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("remove_claim", cancellation)
        _require(role, "role")
        _require(claim, "claim")
        role.remove_claim(claim)
