"""User store: credentials, claims, logins, tokens, roles and lockout state."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, TypeVar

from ninja_identity.config import MongoIdentityOptions
from ninja_identity.connections import ConnectionManager, options_from_url
from ninja_identity.keys import STRING_KEY, KeyConverter
from ninja_identity.models import IdentityClaim, IdentityUser, IdentityUserLogin
from ninja_identity.protocols import CancellationSignal
from ninja_identity.query import DocumentQuery
from ninja_identity.results import IdentityErrorDescriber
from ninja_identity.stores.base import DocumentStore, _require, _require_text

TUser = TypeVar("TUser", bound=IdentityUser)

# Token coordinates under which the authenticator key and recovery codes are kept.
INTERNAL_LOGIN_PROVIDER = "[AspNetUserStore]"
AUTHENTICATOR_KEY_TOKEN_NAME = "AuthenticatorKey"
RECOVERY_CODES_TOKEN_NAME = "RecoveryCodes"
RECOVERY_CODE_SEPARATOR = ";"


def _split_codes(value: str | None) -> list[str]:
    # "" means no codes, not one empty code.
    if not value:
        return []
    return value.split(RECOVERY_CODE_SEPARATOR)


class UserStore(DocumentStore[TUser]):
    """MongoDB store for :class:`~ninja_identity.models.IdentityUser` documents.

    Setters only change the user object passed in; call :meth:`update` to
    persist them. The store-backed lookups are :meth:`find_by_id`,
    :meth:`find_by_name`, :meth:`find_by_email`, :meth:`find_by_login`,
    :meth:`get_users_for_claim` and :meth:`get_users_in_role`.

    Use a custom user model by subclassing ``IdentityUser`` and passing
    ``document_factory=MyUser.from_document``.
    """

    entity_name = "User"
    default_collection_name = "users"

    def __init__(
        self,
        database: Any,
        collection_name: str | None = None,
        *,
        document_factory: Callable[[Mapping[str, Any]], TUser] | None = None,
        describer: IdentityErrorDescriber | None = None,
        key_converter: KeyConverter[Any] = STRING_KEY,
    ) -> None:
        super().__init__(
            database,
            collection_name,
            document_factory=document_factory or IdentityUser.from_document,
            describer=describer,
            key_converter=key_converter,
        )

    @classmethod
    def from_options(
        cls, options: MongoIdentityOptions, manager: ConnectionManager | None = None, **kwargs: Any
    ) -> UserStore[Any]:
        """Build a store on ``options.user_collection_name``.

        Pass a shared *manager* to reuse clients across stores and close them
        at shutdown; without one a private manager (and client) is created.
        """
        manager = manager or ConnectionManager()
        return cls(manager.get_database(options), options.user_collection_name, **kwargs)

    @classmethod
    def from_url(
        cls,
        connection_string: str,
        collection_name: str | None = None,
        manager: ConnectionManager | None = None,
        **kwargs: Any,
    ) -> UserStore[Any]:
        """Build a store from a connection string; raises ``ConfigurationError`` if it names no database."""
        collection_name = collection_name or cls.default_collection_name
        options = options_from_url(connection_string, user_collection_name=collection_name)
        return cls.from_options(options, manager, **kwargs)

    @property
    def users(self) -> DocumentQuery[TUser]:
        return self.query

    # -- identity -------------------------------------------------------------

    async def get_user_id(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_user_id", cancellation)
        _require(user, "user")
        return self.convert_id_to_string(user.id)

    async def get_user_name(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_user_name", cancellation)
        _require(user, "user")
        return user.user_name

    async def set_user_name(
        self, user: TUser, user_name: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_user_name", cancellation)
        _require(user, "user")
        user.user_name = user_name

    async def get_normalized_user_name(
        self, user: TUser, *, cancellation: CancellationSignal | None = None
    ) -> str | None:
        self._check("get_normalized_user_name", cancellation)
        _require(user, "user")
        return user.normalized_user_name

    async def set_normalized_user_name(
        self, user: TUser, normalized_name: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_normalized_user_name", cancellation)
        _require(user, "user")
        user.normalized_user_name = normalized_name

    async def find_by_name(
        self, normalized_user_name: str, *, cancellation: CancellationSignal | None = None
    ) -> TUser | None:
        """Find the user whose ``normalized_user_name`` matches exactly."""
        self._check("find_by_name", cancellation)
        _require_text(normalized_user_name, "normalized_user_name")
        return await self._find_one({"normalized_user_name": normalized_user_name}, "find_by_name")

    # -- claims ---------------------------------------------------------------

    async def get_claims(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> list[IdentityClaim]:
        self._check("get_claims", cancellation)
        _require(user, "user")
        return list(user.claims)

    async def add_claims(
        self, user: TUser, claims: Iterable[IdentityClaim], *, cancellation: CancellationSignal | None = None
    ) -> None:
        """Add each claim not already present on *user*."""
        self._check("add_claims", cancellation)
        _require(user, "user")
        _require(claims, "claims")
        for claim in claims:
            user.add_claim(claim)

    async def replace_claim(
        self,
        user: TUser,
        claim: IdentityClaim,
        new_claim: IdentityClaim,
        *,
        cancellation: CancellationSignal | None = None,
    ) -> bool:
        """Swap every copy of *claim* for a single *new_claim*.

        Returns ``False`` and leaves *user* untouched when *claim* is absent.
        """
        self._check("replace_claim", cancellation)
        _require(user, "user")
        _require(claim, "claim")
        _require(new_claim, "new_claim")
        return user.replace_claim(claim, new_claim)

    async def remove_claims(
        self, user: TUser, claims: Iterable[IdentityClaim], *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("remove_claims", cancellation)
        _require(user, "user")
        _require(claims, "claims")
        for claim in claims:
            user.remove_claim(claim)

    async def get_users_for_claim(
        self, claim: IdentityClaim, *, cancellation: CancellationSignal | None = None
    ) -> list[TUser]:
        self._check("get_users_for_claim", cancellation)
        _require(claim, "claim")
        filters = {"claims": {"$elemMatch": {"claim_type": claim.claim_type, "claim_value": claim.claim_value}}}
        return await self._find_many(filters, "get_users_for_claim")

    # -- logins ---------------------------------------------------------------

    async def add_login(
        self, user: TUser, login: IdentityUserLogin, *, cancellation: CancellationSignal | None = None
    ) -> None:
        """Attach *login* unless the same ``(provider, key)`` pair is already attached."""
        self._check("add_login", cancellation)
        _require(user, "user")
        _require(login, "login")
        user.add_login(login)

    async def remove_login(
        self,
        user: TUser,
        login_provider: str,
        provider_key: str,
        *,
        cancellation: CancellationSignal | None = None,
    ) -> int:
        self._check("remove_login", cancellation)
        _require(user, "user")
        return user.remove_login(login_provider, provider_key)

    async def get_logins(
        self, user: TUser, *, cancellation: CancellationSignal | None = None
    ) -> list[IdentityUserLogin]:
        self._check("get_logins", cancellation)
        _require(user, "user")
        return list(user.logins)

    async def find_by_login(
        self, login_provider: str, provider_key: str, *, cancellation: CancellationSignal | None = None
    ) -> TUser | None:
        """Find the user holding the external login ``(login_provider, provider_key)``."""
        self._check("find_by_login", cancellation)
        _require_text(login_provider, "login_provider")
        _require_text(provider_key, "provider_key")
        filters = {"logins": {"$elemMatch": {"login_provider": login_provider, "provider_key": provider_key}}}
        return await self._find_one(filters, "find_by_login")

    # -- roles ----------------------------------------------------------------

    async def add_to_role(
        self, user: TUser, normalized_role_name: str, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("add_to_role", cancellation)
        _require(user, "user")
        _require_text(normalized_role_name, "normalized_role_name")
        user.add_role(normalized_role_name)

    async def remove_from_role(
        self, user: TUser, normalized_role_name: str, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("remove_from_role", cancellation)
        _require(user, "user")
        _require_text(normalized_role_name, "normalized_role_name")
        user.remove_role(normalized_role_name)

    async def get_roles(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> list[str]:
        self._check("get_roles", cancellation)
        _require(user, "user")
        return list(user.roles)

    async def is_in_role(
        self, user: TUser, normalized_role_name: str, *, cancellation: CancellationSignal | None = None
    ) -> bool:
        self._check("is_in_role", cancellation)
        _require(user, "user")
        _require_text(normalized_role_name, "normalized_role_name")
        return normalized_role_name in user.roles

    async def get_users_in_role(
        self, normalized_role_name: str, *, cancellation: CancellationSignal | None = None
    ) -> list[TUser]:
        self._check("get_users_in_role", cancellation)
        _require_text(normalized_role_name, "normalized_role_name")
        return await self._find_many({"roles": normalized_role_name}, "get_users_in_role")

    # -- password & security stamp ---------------------------------------------

    async def set_password_hash(
        self, user: TUser, password_hash: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_password_hash", cancellation)
        _require(user, "user")
        user.password_hash = password_hash

    async def get_password_hash(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_password_hash", cancellation)
        _require(user, "user")
        return user.password_hash

    async def has_password(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> bool:
        self._check("has_password", cancellation)
        _require(user, "user")
        return user.password_hash is not None

    async def set_security_stamp(
        self, user: TUser, stamp: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_security_stamp", cancellation)
        _require(user, "user")
        user.security_stamp = stamp

    async def get_security_stamp(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_security_stamp", cancellation)
        _require(user, "user")
        return user.security_stamp

    # -- email ----------------------------------------------------------------

    async def set_email(
        self, user: TUser, email: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_email", cancellation)
        _require(user, "user")
        user.email = email

    async def get_email(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_email", cancellation)
        _require(user, "user")
        return user.email

    async def get_email_confirmed(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> bool:
        self._check("get_email_confirmed", cancellation)
        _require(user, "user")
        return user.email_confirmed

    async def set_email_confirmed(
        self, user: TUser, confirmed: bool, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_email_confirmed", cancellation)
        _require(user, "user")
        user.email_confirmed = confirmed

    async def get_normalized_email(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_normalized_email", cancellation)
        _require(user, "user")
        return user.normalized_email

    async def set_normalized_email(
        self, user: TUser, normalized_email: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_normalized_email", cancellation)
        _require(user, "user")
        user.normalized_email = normalized_email

    async def find_by_email(
        self, normalized_email: str, *, cancellation: CancellationSignal | None = None
    ) -> TUser | None:
        self._check("find_by_email", cancellation)
        _require_text(normalized_email, "normalized_email")
        return await self._find_one({"normalized_email": normalized_email}, "find_by_email")

    # -- phone ----------------------------------------------------------------

    async def set_phone_number(
        self, user: TUser, phone_number: str | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_phone_number", cancellation)
        _require(user, "user")
        user.phone_number = phone_number

    async def get_phone_number(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_phone_number", cancellation)
        _require(user, "user")
        return user.phone_number

    async def get_phone_number_confirmed(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> bool:
        self._check("get_phone_number_confirmed", cancellation)
        _require(user, "user")
        return user.phone_number_confirmed

    async def set_phone_number_confirmed(
        self, user: TUser, confirmed: bool, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_phone_number_confirmed", cancellation)
        _require(user, "user")
        user.phone_number_confirmed = confirmed

    # -- lockout --------------------------------------------------------------

    async def get_lockout_end_date(
        self, user: TUser, *, cancellation: CancellationSignal | None = None
    ) -> datetime | None:
        self._check("get_lockout_end_date", cancellation)
        _require(user, "user")
        return user.lockout_end

    async def set_lockout_end_date(
        self, user: TUser, lockout_end: datetime | None, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_lockout_end_date", cancellation)
        _require(user, "user")
        user.lockout_end = lockout_end

    async def increment_access_failed_count(
        self, user: TUser, *, cancellation: CancellationSignal | None = None
    ) -> int:
        """Bump the failure counter in memory and return the new value."""
        self._check("increment_access_failed_count", cancellation)
        _require(user, "user")
        user.access_failed_count += 1
        return user.access_failed_count

    async def reset_access_failed_count(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> None:
        self._check("reset_access_failed_count", cancellation)
        _require(user, "user")
        user.access_failed_count = 0

    async def get_access_failed_count(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> int:
        self._check("get_access_failed_count", cancellation)
        _require(user, "user")
        return user.access_failed_count

    async def get_lockout_enabled(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> bool:
        self._check("get_lockout_enabled", cancellation)
        _require(user, "user")
        return user.lockout_enabled

    async def set_lockout_enabled(
        self, user: TUser, enabled: bool, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_lockout_enabled", cancellation)
        _require(user, "user")
        user.lockout_enabled = enabled

    # -- two-factor -----------------------------------------------------------

    async def set_two_factor_enabled(
        self, user: TUser, enabled: bool, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_two_factor_enabled", cancellation)
        _require(user, "user")
        user.two_factor_enabled = enabled

    async def get_two_factor_enabled(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> bool:
        self._check("get_two_factor_enabled", cancellation)
        _require(user, "user")
        return user.two_factor_enabled

    # -- authentication tokens ------------------------------------------------

    async def set_token(
        self,
        user: TUser,
        login_provider: str,
        name: str,
        value: str | None,
        *,
        cancellation: CancellationSignal | None = None,
    ) -> None:
        """Store *value* under ``(login_provider, name)``, replacing any previous value."""
        self._check("set_token", cancellation)
        _require(user, "user")
        _require(login_provider, "login_provider")
        _require(name, "name")
        user.set_token(login_provider, name, value)

    async def remove_token(
        self, user: TUser, login_provider: str, name: str, *, cancellation: CancellationSignal | None = None
    ) -> int:
        self._check("remove_token", cancellation)
        _require(user, "user")
        _require(login_provider, "login_provider")
        _require(name, "name")
        return user.remove_token(login_provider, name)

    async def get_token(
        self, user: TUser, login_provider: str, name: str, *, cancellation: CancellationSignal | None = None
    ) -> str | None:
        self._check("get_token", cancellation)
        _require(user, "user")
        _require(login_provider, "login_provider")
        _require(name, "name")
        token = user.find_token(login_provider, name)
        return token.value if token is not None else None

    # -- authenticator key ----------------------------------------------------

    async def set_authenticator_key(
        self, user: TUser, key: str, *, cancellation: CancellationSignal | None = None
    ) -> None:
        self._check("set_authenticator_key", cancellation)
        _require(user, "user")
        _require(key, "key")
        user.set_token(INTERNAL_LOGIN_PROVIDER, AUTHENTICATOR_KEY_TOKEN_NAME, key)

    async def get_authenticator_key(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> str | None:
        self._check("get_authenticator_key", cancellation)
        _require(user, "user")
        token = user.find_token(INTERNAL_LOGIN_PROVIDER, AUTHENTICATOR_KEY_TOKEN_NAME)
        return token.value if token is not None else None

    # -- recovery codes -------------------------------------------------------

    def _recovery_codes(self, user: TUser) -> list[str]:
        token = user.find_token(INTERNAL_LOGIN_PROVIDER, RECOVERY_CODES_TOKEN_NAME)
        return _split_codes(token.value if token is not None else None)

    def _store_recovery_codes(self, user: TUser, codes: Iterable[str]) -> None:
        user.set_token(INTERNAL_LOGIN_PROVIDER, RECOVERY_CODES_TOKEN_NAME, RECOVERY_CODE_SEPARATOR.join(codes))

    async def replace_codes(
        self, user: TUser, recovery_codes: Iterable[str], *, cancellation: CancellationSignal | None = None
    ) -> None:
        """Overwrite the user's recovery codes with *recovery_codes*."""
        self._check("replace_codes", cancellation)
        _require(user, "user")
        _require(recovery_codes, "recovery_codes")
        codes = list(recovery_codes)
        if any(RECOVERY_CODE_SEPARATOR in code for code in codes):
            raise ValueError(f"recovery codes must not contain {RECOVERY_CODE_SEPARATOR!r}")
        self._store_recovery_codes(user, codes)

    async def redeem_code(self, user: TUser, code: str, *, cancellation: CancellationSignal | None = None) -> bool:
        """Consume *code* if the user has it.

        Returns ``True`` when the code was present and has been removed from
        the in-memory user, ``False`` otherwise.
        """
        self._check("redeem_code", cancellation)
        _require(user, "user")
        _require(code, "code")
        codes = self._recovery_codes(user)
        if code not in codes:
            return False
        self._store_recovery_codes(user, (c for c in codes if c != code))
        return True

    async def count_codes(self, user: TUser, *, cancellation: CancellationSignal | None = None) -> int:
        self._check("count_codes", cancellation)
        _require(user, "user")
        return len(self._recovery_codes(user))
