"""
Access token encoding and verification.

Tokens are HS256 JWTs that carry the caller's identity, tenant, role ids and
a snapshot of their resolved access profile. Verifying one needs only the
signing secret, never the database.

The profile inside a token is not refreshed when roles or grants change. It
stays in force until the token expires (``ACCESS_TOKEN_EXPIRE_MINUTES``) or
the user logs in again. Shorten the expiry where faster revocation matters.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from app.core import config
from app.core.exceptions import UnauthorizedError
from app.features.permissions.types import AccessProfile

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded contents of an access token."""

    user_id: str
    tenant_id: str | None
    roles: list[str]
    profile: AccessProfile
    issued_at: datetime
    expires_at: datetime


def create_access_token(
    user_id: str,
    tenant_id: str | None,
    roles: list[str],
    profile: AccessProfile,
    now: datetime | None = None,
) -> str:
    """Sign an access token.

    Args:
        user_id: User identifier
        tenant_id: Enterprise the user is scoped to, if any
        roles: Role ids the profile was resolved from
        profile: Resolved access profile to embed
        now: Issue time (defaults to the current UTC time)

    Returns:
        Encoded JWT string
    """
    issued = now or datetime.now(timezone.utc)
    expire = issued + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": user_id,
        "tenant_id": tenant_id,
        "roles": list(roles),
        "profile": profile.to_claim(),
        "type": ACCESS_TOKEN_TYPE,
        "iat": int(issued.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str | None) -> TokenClaims:
    """Verify and decode an access token.

    Raises:
        UnauthorizedError: If the token is missing, malformed, tampered with or expired
    """
    if not token:
        raise UnauthorizedError("Not authenticated")

    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired") from None
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token") from None

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise UnauthorizedError("Invalid token")

    try:
        return TokenClaims(
            user_id=str(payload["sub"]),
            tenant_id=payload.get("tenant_id"),
            roles=[str(role) for role in payload.get("roles", [])],
            profile=AccessProfile.from_claim(payload.get("profile", [])),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError("Invalid token") from None
