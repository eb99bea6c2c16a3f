"""Operation results and the error describer used by the stores."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ninja_identity.exceptions import ConnectionFailedError, DuplicateEntityError, PersistenceError


class IdentityError(BaseModel):
    """A single user-facing error: a stable code plus a readable description."""

    model_config = {"frozen": True}

    code: str
    description: str


class IdentityResult(BaseModel):
    """Outcome of a store write (create, update or delete)."""

    model_config = {"frozen": True}

    succeeded: bool
    errors: tuple[IdentityError, ...] = Field(default_factory=tuple)

    @classmethod
    def success(cls) -> IdentityResult:
        return _SUCCESS

    @classmethod
    def failed(cls, *errors: IdentityError) -> IdentityResult:
        return cls(succeeded=False, errors=errors)

    def __str__(self) -> str:
        if self.succeeded:
            return "Succeeded"
        return "Failed : " + ",".join(e.code for e in self.errors)


_SUCCESS = IdentityResult(succeeded=True)


class IdentityErrorDescriber:
    """Maps store failures to ``IdentityError`` values.

    Subclass and override individual methods to localise or reword messages,
    then pass the instance to a store via ``describer=`` or assign it to
    ``store.describer``.
    """

    def default_error(self, detail: str | None = None) -> IdentityError:
        return IdentityError(code="DefaultError", description=detail or "An unknown failure has occurred.")

    def concurrency_failure(self) -> IdentityError:
        return IdentityError(
            code="ConcurrencyFailure",
            description="Optimistic concurrency failure, object has been modified.",
        )

    def duplicate_user_name(self, user_name: str | None = None) -> IdentityError:
        if user_name:
            return IdentityError(code="DuplicateUserName", description=f"Username '{user_name}' is already taken.")
        return IdentityError(code="DuplicateUserName", description="Username is already taken.")

    def duplicate_email(self, email: str | None = None) -> IdentityError:
        if email:
            return IdentityError(code="DuplicateEmail", description=f"Email '{email}' is already taken.")
        return IdentityError(code="DuplicateEmail", description="Email is already taken.")

    def duplicate_role_name(self, role: str | None = None) -> IdentityError:
        if role:
            return IdentityError(code="DuplicateRoleName", description=f"Role name '{role}' is already taken.")
        return IdentityError(code="DuplicateRoleName", description="Role name is already taken.")

    def duplicate_id(self) -> IdentityError:
        return IdentityError(code="DuplicateId", description="A record with the same identifier already exists.")

    def store_unavailable(self) -> IdentityError:
        return IdentityError(code="StoreUnavailable", description="The identity store could not be reached.")

    def describe(self, error: PersistenceError) -> IdentityError:
        """Pick the describer method matching *error*.

        Duplicate-key errors are narrowed by the index key the driver reported,
        so a unique index on ``normalized_email`` surfaces as ``DuplicateEmail``.
        """
        if isinstance(error, DuplicateEntityError):
            keys = set(error.key_fields)
            if keys & {"user_name", "normalized_user_name"}:
                return self.duplicate_user_name()
            if keys & {"email", "normalized_email"}:
                return self.duplicate_email()
            if keys & {"name", "normalized_name"}:
                return self.duplicate_role_name()
            return self.duplicate_id()
        if isinstance(error, ConnectionFailedError):
            return self.store_unavailable()
        cause = error.__cause__
        return self.default_error(str(cause) if cause is not None and str(cause) else error.detail)
