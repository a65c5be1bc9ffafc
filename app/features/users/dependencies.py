"""
FastAPI dependencies for authentication.
"""
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.exceptions import UnauthorizedError
from app.features.users.auth import TokenClaims, decode_token
from app.features.users.models import User


# auto_error=False so a missing header surfaces as our own 401, not FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    return credentials.credentials if credentials else None


async def get_token_claims(token: Annotated[str | None, Depends(get_bearer_token)]) -> TokenClaims:
    """
    Decode the caller's access token. No database access.

    Usage:
        @router.get("/profile/me")
        async def my_profile(claims: TokenClaims = Depends(get_token_claims)):
            return claims.profile.to_claim()
    """
    return decode_token(token)


async def get_optional_token_claims(
    token: Annotated[str | None, Depends(get_bearer_token)],
) -> TokenClaims | None:
    """Claims when a token is sent, None for anonymous callers. A bad token is still a 401."""
    if token is None:
        return None
    return decode_token(token)


async def get_current_user(
    claims: Annotated[TokenClaims, Depends(get_token_claims)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Load the user a token was issued to.

    Tokens outlive account changes, so the account state is re-checked here
    for routes that act on the caller's own record.
    """
    user = await db.get(User, claims.user_id)
    if user is None or not user.is_active or user.is_blocked:
        raise UnauthorizedError("User account is not active")
    return user


def get_authorization_header(request: Request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
