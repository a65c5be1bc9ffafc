"""One-time tokens for password setup and reset links."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from app.core import config

RESET_TOKEN_BYTES = 32  # 256 bits of entropy


def generate_reset_token() -> str:
    """Generate a URL-safe one-time token."""
    return secrets.token_urlsafe(RESET_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token; the plaintext is never stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_token_expiry(minutes: int | None = None) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes or config.RESET_TOKEN_EXPIRE_MINUTES)


def is_token_expired(expires_at: datetime | None) -> bool:
    if expires_at is None:
        return True
    # SQLite hands back naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) > expires_at


def build_reset_url(token: str) -> str:
    return f"{config.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
