"""
Error kinds raised by the access core.

Services raise these; ``app.main`` turns them into HTTP responses in a single
exception handler so routes never build status codes themselves.
"""
from fastapi import status


class AccessCoreError(Exception):
    """Base class for every error the access core reports to callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class BadRequestError(AccessCoreError):
    """The request is well formed but cannot be applied as given."""


class UnauthorizedError(AccessCoreError):
    """Missing, malformed or expired credentials. The caller must re-authenticate."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"


class ForbiddenError(AccessCoreError):
    """Identity is known but lacks the capability for the operation."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action"


class ConflictError(AccessCoreError):
    """Uniqueness violation (role name, enterprise name, user email)."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class InvalidReferenceError(AccessCoreError):
    """A referenced feature or role id does not exist."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Referenced resource does not exist"


class NotFoundError(AccessCoreError):
    """The role, enterprise, user or grant being operated on does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"
