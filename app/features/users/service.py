"""
User authentication and account operations.
"""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from app.features.enterprises.models import Enterprise
from app.features.notifications.notifier import NotificationKind, Notifier, send_notification
from app.features.permissions.grants import assign_role, get_or_create_member_role, get_user_role_ids
from app.features.permissions.resolver import resolve
from app.features.users.auth import create_access_token
from app.features.users.models import User
from app.features.users.password import hash_password, verify_password
from app.features.users.tokens import (
    build_reset_url,
    generate_reset_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
)
from app.utils import get_logger


log = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def signup(db: AsyncSession, email: str, password: str, name: str = "") -> User:
    """Self-service signup: an active user holding the default member role."""
    if await get_user_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists")

    member_role = await get_or_create_member_role(db)
    user = User(
        email=normalize_email(email),
        name=name,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
        await assign_role(db, user.id, member_role.id, commit=False)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("User with this email already exists") from e

    await db.refresh(user)
    log.info("User %s signed up", user.id)
    return user


async def issue_token(db: AsyncSession, user: User) -> str:
    """
    Resolve the user's roles and sign an access token embedding the result.

    Raises:
        UnauthorizedError: the user is inactive or blocked
    """
    if not user.is_active or user.is_blocked:
        raise UnauthorizedError("Account is not active")

    role_ids = await get_user_role_ids(db, user.id)
    profile = await resolve(db, role_ids)
    return create_access_token(
        user_id=user.id,
        tenant_id=user.tenant_id,
        roles=role_ids,
        profile=profile,
    )


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """
    Check credentials and account state.

    Every failure raises the same message so the response never reveals
    whether an email is registered or why the account is unusable.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        log.info("Failed login for %s", normalize_email(email))
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if user.is_blocked or not user.is_active:
        log.info("Login refused for user %s (active=%s, blocked=%s)", user.id, user.is_active, user.is_blocked)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if user.tenant_id is not None:
        enterprise = await db.get(Enterprise, user.tenant_id)
        if enterprise is None or not enterprise.is_active:
            log.info("Login refused for user %s: enterprise %s inactive", user.id, user.tenant_id)
            raise UnauthorizedError(INVALID_CREDENTIALS)

    return user


async def login(db: AsyncSession, email: str, password: str) -> dict[str, Any]:
    """Authenticate and return an access token with basic user info."""
    user = await authenticate(db, email, password)
    token = await issue_token(db, user)

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": user,
    }


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> User:
    """
    Replace the password of a signed-in user.

    Raises:
        BadRequestError: ``current_password`` does not match
    """
    if not verify_password(current_password, user.password_hash):
        log.info("Password change refused for user %s: current password mismatch", user.id)
        raise BadRequestError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    await db.commit()
    await db.refresh(user)

    log.info("Password changed for user %s", user.id)
    return user


# ============================================================================
# Password setup / reset
# ============================================================================

def start_password_reset(user: User) -> str:
    """Attach a fresh one-time token to ``user`` and return its plaintext.

    The caller commits; any previous token stops working.
    """
    token = generate_reset_token()
    user.reset_token_hash = hash_token(token)
    user.reset_token_expires_at = get_token_expiry()
    return token


async def request_password_reset(db: AsyncSession, email: str, notifier: Notifier) -> None:
    """
    Send a reset link if the account exists.

    Always succeeds so callers cannot probe which emails are registered.
    """
    user = await get_user_by_email(db, email)
    if user is None or user.is_blocked:
        log.info("Password reset requested for unknown or blocked account")
        return
    if user.password_hash is None and not user.is_active and not user.is_tenant_admin:
        # completing setup would activate the account; only the tenant admin may reissue it
        log.info("Password reset refused for pending user %s", user.id)
        return

    token = start_password_reset(user)
    await db.commit()
    await send_notification(
        notifier,
        user.email,
        NotificationKind.PASSWORD_RESET,
        {"reset_url": build_reset_url(token), "expires_in_minutes": config.RESET_TOKEN_EXPIRE_MINUTES},
    )


async def complete_password_reset(db: AsyncSession, token: str, password: str) -> User:
    """
    Set a password from a one-time token.

    Completing first-time setup activates the account. A reset on an account
    that already had a password leaves ``is_active`` alone, so a deactivated
    user stays deactivated.

    Raises:
        UnauthorizedError: token unknown, already used or expired
        ForbiddenError: the user's enterprise is inactive
    """
    result = await db.execute(select(User).where(User.reset_token_hash == hash_token(token)))
    user = result.scalar_one_or_none()
    if user is None:
        raise UnauthorizedError("Invalid or expired reset link")

    if is_token_expired(user.reset_token_expires_at):
        log.warning("Expired reset token used for user %s", user.id)
        raise UnauthorizedError("Invalid or expired reset link")

    if user.tenant_id is not None:
        enterprise = await db.get(Enterprise, user.tenant_id)
        if enterprise is None or not enterprise.is_active:
            raise ForbiddenError("Enterprise is inactive")

    first_setup = user.password_hash is None
    user.password_hash = hash_password(password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    if first_setup:
        user.is_active = True
    await db.commit()
    await db.refresh(user)

    log.info("Password set for user %s", user.id)
    return user


async def set_user_blocked(db: AsyncSession, user_id: str, blocked: bool) -> User:
    """Block or unblock a user. Independent of the active flag."""
    user = await get_user(db, user_id)
    user.is_blocked = blocked
    await db.commit()
    await db.refresh(user)
    log.info("User %s %s", user.id, "blocked" if blocked else "unblocked")
    return user
