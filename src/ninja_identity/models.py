"""Document models for users, roles and their embedded claims, logins and tokens."""

from __future__ import annotations

import uuid
from collections.abc import Hashable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator


def _new_id() -> str:
    return str(uuid.uuid4())


def _ensure_unique(pairs: Iterable[Hashable], what: str) -> None:
    seen: set[Hashable] = set()
    for pair in pairs:
        if pair in seen:
            raise ValueError(f"Duplicate {what} {pair!r}")
        seen.add(pair)


# ---------------------------------------------------------------------------
# Embedded values
# ---------------------------------------------------------------------------


class IdentityClaim(BaseModel):
    """A type/value assertion about a user or role. Compared structurally."""

    model_config = {"frozen": True, "extra": "ignore"}

    claim_type: str
    claim_value: str


class IdentityUserLogin(BaseModel):
    """An external-provider binding: ``(login_provider, provider_key)`` is unique per user."""

    model_config = {"frozen": True, "extra": "ignore"}

    login_provider: str
    provider_key: str
    provider_display_name: str | None = None


class IdentityUserToken(BaseModel):
    """A named auxiliary secret: ``(login_provider, name)`` is unique per user."""

    model_config = {"frozen": True, "extra": "ignore"}

    login_provider: str
    name: str
    value: str | None = None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class IdentityDocumentBase(BaseModel):
    """Common base for top-level documents stored in a collection.

    ``id`` maps to the ``_id`` primary key and cannot be reassigned after
    construction. Subclasses may narrow its type by redeclaring it with the same
    alias (``id: int = Field(alias="_id", frozen=True)``) as long as the
    store is given a matching ``KeyConverter``.
    """

    model_config = {"populate_by_name": True, "validate_assignment": True, "extra": "ignore"}

    id: Any = Field(default_factory=_new_id, alias="_id", frozen=True)

    def to_document(self) -> dict[str, Any]:
        """Return a BSON-ready dict with embedded tuples turned into lists."""
        doc = self.model_dump(by_alias=True)
        return {key: list(value) if isinstance(value, tuple) else value for key, value in doc.items()}

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Self:
        return cls.model_validate(dict(document))


class ClaimOwnerDocument(IdentityDocumentBase):
    """A document with an embedded list of claims."""

    claims: tuple[IdentityClaim, ...] = ()

    def add_claim(self, claim: IdentityClaim) -> bool:
        """Append *claim* unless an equal claim is already present."""
        if claim in self.claims:
            return False
        self.claims = (*self.claims, claim)
        return True

    def remove_claim(self, claim: IdentityClaim) -> int:
        """Remove every claim equal to *claim*; return how many were removed."""
        kept = tuple(c for c in self.claims if c != claim)
        removed = len(self.claims) - len(kept)
        if removed:
            self.claims = kept
        return removed

    def replace_claim(self, claim: IdentityClaim, new_claim: IdentityClaim) -> bool:
        if claim not in self.claims:
            return False
        self.claims = (*(c for c in self.claims if c != claim), new_claim)
        return True


class IdentityUser(ClaimOwnerDocument):
    """A user document.

    Embedded collections are tuples; use the ``add_*``/``remove_*``/``set_*``
    methods (or the store operations built on them) to change them. Direct
    reassignment is validated, so duplicate logins or tokens are rejected
    either way.
    """

    user_name: str | None = None
    normalized_user_name: str | None = None
    email: str | None = None
    normalized_email: str | None = None
    email_confirmed: bool = False
    password_hash: str | None = None
    security_stamp: str | None = None
    phone_number: str | None = None
    phone_number_confirmed: bool = False
    two_factor_enabled: bool = False
    lockout_end: datetime | None = None
    lockout_enabled: bool = False
    access_failed_count: int = Field(default=0, ge=0)
    roles: tuple[str, ...] = ()
    logins: tuple[IdentityUserLogin, ...] = ()
    tokens: tuple[IdentityUserToken, ...] = ()

    @field_validator("lockout_end")
    @classmethod
    def _as_stored_datetime(cls, v: datetime | None) -> datetime | None:
        """Normalize to what MongoDB hands back: UTC-aware, millisecond precision.

        Naive values are taken to be UTC.
        """
        if v is None:
            return None
        v = v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v.astimezone(timezone.utc)
        return v.replace(microsecond=v.microsecond // 1000 * 1000)

    @model_validator(mode="after")
    def _check_unique_pairs(self) -> IdentityUser:
        _ensure_unique(((login.login_provider, login.provider_key) for login in self.logins), "login")
        _ensure_unique(((token.login_provider, token.name) for token in self.tokens), "token")
        return self

    def __str__(self) -> str:
        return self.user_name or ""

    # -- logins ---------------------------------------------------------------

    def add_login(self, login: IdentityUserLogin) -> bool:
        if any(_same_login(x, login.login_provider, login.provider_key) for x in self.logins):
            return False
        self.logins = (*self.logins, login)
        return True

    def remove_login(self, login_provider: str, provider_key: str) -> int:
        kept = tuple(x for x in self.logins if not _same_login(x, login_provider, provider_key))
        removed = len(self.logins) - len(kept)
        if removed:
            self.logins = kept
        return removed

    # -- tokens ---------------------------------------------------------------

    def find_token(self, login_provider: str, name: str) -> IdentityUserToken | None:
        return next((t for t in self.tokens if t.login_provider == login_provider and t.name == name), None)

    def set_token(self, login_provider: str, name: str, value: str | None) -> None:
        """Replace any existing ``(login_provider, name)`` token with a fresh one."""
        kept = tuple(t for t in self.tokens if not (t.login_provider == login_provider and t.name == name))
        self.tokens = (*kept, IdentityUserToken(login_provider=login_provider, name=name, value=value))

    def remove_token(self, login_provider: str, name: str) -> int:
        kept = tuple(t for t in self.tokens if not (t.login_provider == login_provider and t.name == name))
        removed = len(self.tokens) - len(kept)
        if removed:
            self.tokens = kept
        return removed

    # -- roles ----------------------------------------------------------------

    def add_role(self, role_name: str) -> bool:
        if role_name in self.roles:
            return False
        self.roles = (*self.roles, role_name)
        return True

    def remove_role(self, role_name: str) -> int:
        kept = tuple(r for r in self.roles if r != role_name)
        removed = len(self.roles) - len(kept)
        if removed:
            self.roles = kept
        return removed


class IdentityRole(ClaimOwnerDocument):
    """A role document."""

    name: str | None = None
    normalized_name: str | None = None

    def __str__(self) -> str:
        return self.name or ""


def _same_login(login: IdentityUserLogin, login_provider: str, provider_key: str) -> bool:
    return login.login_provider == login_provider and login.provider_key == provider_key
