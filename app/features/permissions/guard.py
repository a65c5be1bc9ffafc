"""
Access guard.

Every protected operation is registered here with the catalog features that
unlock it. A caller passes when their token's profile holds at least one of
those features with any flag set. The level of the flag is not consulted
unless the operation was registered with an explicit ``level``.

The guard reads only the token. Denials carry one fixed message so a caller
cannot learn which feature they lack.
"""
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends

from app.core.exceptions import ForbiddenError
from app.features.permissions.types import PermissionLevel
from app.features.users.auth import TokenClaims, decode_token
from app.features.users.dependencies import get_token_claims
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class AccessRequirement:
    """Features that unlock an operation (any one suffices)."""

    features: tuple[str, ...]
    level: PermissionLevel | None = None


OPERATIONS: dict[str, AccessRequirement] = {}


def register_operation(
    operation_id: str,
    *features: str,
    level: PermissionLevel | None = None,
) -> AccessRequirement:
    if not features:
        raise ValueError(f"Operation {operation_id!r} must name at least one feature")
    if operation_id in OPERATIONS:
        raise ValueError(f"Operation {operation_id!r} is already registered")
    requirement = AccessRequirement(features=tuple(features), level=level)
    OPERATIONS[operation_id] = requirement
    return requirement


def get_requirement(operation_id: str) -> AccessRequirement:
    try:
        return OPERATIONS[operation_id]
    except KeyError:
        raise KeyError(f"Unknown operation {operation_id!r}") from None


def authorize(claims: TokenClaims, requirement: AccessRequirement) -> None:
    """Raise ForbiddenError unless the claims satisfy ``requirement``."""
    for feature in requirement.features:
        if claims.profile.allows(feature, requirement.level):
            return
    log.info("Access denied for user %s (requires any of %s)", claims.user_id, requirement.features)
    raise ForbiddenError()


def check_access(token: str | None, operation_id: str) -> TokenClaims:
    """Decode ``token`` and authorize it for ``operation_id``."""
    requirement = get_requirement(operation_id)
    claims = decode_token(token)
    authorize(claims, requirement)
    return claims


def require_operation(operation_id: str):
    """
    FastAPI dependency guarding a route with a registered operation.

    Usage:
        @router.post("/", dependencies=[Depends(require_operation(CREATE_ROLE))])
        async def create_role(...):
            ...

    Unknown operation ids fail when the route module is imported.
    """
    requirement = get_requirement(operation_id)

    async def operation_dependency(
        claims: Annotated[TokenClaims, Depends(get_token_claims)],
    ) -> TokenClaims:
        authorize(claims, requirement)
        return claims

    return operation_dependency
