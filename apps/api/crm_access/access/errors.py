from __future__ import annotations


class AccessError(Exception):
    """Base error for authorization and assignment resolution failures."""

    code = "access_error"

    def __init__(self, message: str, *, details: object | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(AccessError):
    """Actor or restriction does not exist, or is not owned by the caller."""

    code = "not_found"


class ForbiddenError(AccessError):
    """Caller's role lacks authority for a management operation."""

    code = "forbidden"


class ConflictError(AccessError):
    """An active restriction already exists for the admin/target pair."""

    code = "conflict"


class InvalidReferenceError(AccessError):
    """A referenced user does not hold the required role or would break the hierarchy."""

    code = "invalid_reference"


class UnavailableError(AccessError):
    """The directory or restriction store could not be reached."""

    code = "unavailable"

    def __init__(self, store: str, message: str | None = None) -> None:
        self.store = store
        super().__init__(message or f"{store} store is unavailable")
