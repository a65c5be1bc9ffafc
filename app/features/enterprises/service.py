"""
Enterprise provisioning and the activation cascade.

Creating an enterprise writes three rows in one transaction: the admin role,
the enterprise that references it and the admin user holding it. Either all
three exist afterwards or none do.

Activation state flows downward. Deactivating an enterprise deactivates
every user scoped to it, and deactivating a tenant admin deactivates the
enterprise (and so everyone in it). Reactivation is narrower: an enterprise
coming back brings back its admins only, and sub-users stay inactive until
they are reactivated one by one.
"""
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.base import generate_ulid
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.core.locks import enterprise_locks, role_locks
from app.features.catalog.service import catalog_key, get_feature_by_key
from app.features.enterprises.models import Enterprise
from app.features.notifications.notifier import NotificationKind, Notifier, send_notification
from app.features.permissions.grants import (
    assign_role,
    create_role,
    get_role,
    get_role_by_name,
    get_role_grants,
    get_user_role_ids,
    grant_specs,
    rename_role,
    validate_feature_ids,
    write_role_grants,
)
from app.features.permissions.resolver import merged_access_by_feature_id, resolve
from app.features.permissions.types import AccessProfile, FeatureAccess, GrantSpec
from app.features.users.models import User
from app.features.users.service import get_user, get_user_by_email, normalize_email, start_password_reset
from app.features.users.tokens import build_reset_url
from app.utils import get_logger


log = get_logger(__name__)


@dataclass
class UserSeed:
    """Who to create and which grants their synthesized role receives."""

    email: str
    name: str = ""
    grants: list[GrantSpec] = field(default_factory=list)


def admin_role_name(enterprise_name: str) -> str:
    """``"Acme"`` -> ``"ACME_ADMIN"``; whitespace runs become underscores."""
    return re.sub(r"\s+", "_", f"{enterprise_name.strip()}_ADMIN").upper()


async def default_admin_grants(db: AsyncSession) -> list[GrantSpec]:
    """Full grants on ``ENTERPRISE_DEFAULT_FEATURES``, for self-service signups."""
    grants = []
    for name in config.ENTERPRISE_DEFAULT_FEATURES:
        feature = await get_feature_by_key(db, catalog_key(name))
        if feature is None:
            log.warning("Default enterprise feature %r is not in the catalog", name)
            continue
        grants.append(GrantSpec(feature_id=feature.id, read=True, write=True, admin=True))
    return grants


def _reset_payload(token: str, **extra) -> dict:
    return {
        "reset_url": build_reset_url(token),
        "expires_in_minutes": config.RESET_TOKEN_EXPIRE_MINUTES,
        **extra,
    }


# ============================================================================
# Lookups
# ============================================================================

async def get_enterprise(db: AsyncSession, enterprise_id: str) -> Enterprise:
    enterprise = await db.get(Enterprise, enterprise_id)
    if enterprise is None:
        raise NotFoundError("Enterprise not found")
    return enterprise


async def get_enterprise_by_name(db: AsyncSession, name: str) -> Enterprise | None:
    result = await db.execute(select(Enterprise).where(Enterprise.name == name.strip()))
    return result.scalar_one_or_none()


async def list_enterprises(
    db: AsyncSession,
    search: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Enterprise], int]:
    stmt = select(Enterprise)
    count_stmt = select(func.count()).select_from(Enterprise)
    if search:
        condition = Enterprise.name.ilike(f"%{search}%") | Enterprise.email.ilike(f"%{search}%")
        stmt = stmt.where(condition)
        count_stmt = count_stmt.where(condition)

    total = await db.scalar(count_stmt)
    result = await db.execute(stmt.order_by(Enterprise.name).offset(skip).limit(limit))
    return list(result.scalars().all()), total or 0


async def list_tenant_users(
    db: AsyncSession,
    enterprise_id: str,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[User], int]:
    total = await db.scalar(
        select(func.count()).select_from(User).where(User.tenant_id == enterprise_id)
    )
    result = await db.execute(
        select(User)
        .where(User.tenant_id == enterprise_id)
        .order_by(User.created_at, User.email)
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


# ============================================================================
# Provisioning
# ============================================================================

async def create_enterprise(
    db: AsyncSession,
    name: str,
    seed: UserSeed,
    notifier: Notifier,
    *,
    description: str | None = None,
) -> Enterprise:
    """
    Provision an enterprise with its admin role and admin user.

    The admin is created inactive with a one-time password setup link, which
    is sent after the transaction commits.

    Raises:
        ConflictError: enterprise name, admin role name or admin email already taken
        InvalidReferenceError: a grant names an unknown feature
    """
    name = name.strip()
    email = normalize_email(seed.email)
    role_name = admin_role_name(name)

    if await get_enterprise_by_name(db, name) is not None:
        raise ConflictError(f"Enterprise '{name}' already exists")
    if await get_role_by_name(db, role_name) is not None:
        raise ConflictError(f"Role '{role_name}' already exists")
    if await get_user_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists")

    try:
        role = await create_role(
            db,
            role_name,
            seed.grants,
            description=f"Administrator of {name}",
            tenant_scoped=True,
            commit=False,
        )

        enterprise = Enterprise(
            name=name,
            email=email,
            description=description,
            admin_role_id=role.id,
            is_active=True,
        )
        db.add(enterprise)
        await db.flush()

        admin = User(
            email=email,
            name=seed.name,
            tenant_id=enterprise.id,
            is_tenant_admin=True,
            is_active=False,
        )
        token = start_password_reset(admin)
        db.add(admin)
        await db.flush()

        await assign_role(db, admin.id, role.id, commit=False)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        log.warning("Integrity error while provisioning enterprise %r: %s", name, e.orig)
        raise ConflictError(f"Enterprise '{name}' already exists") from e
    except Exception:
        await db.rollback()
        raise

    await db.refresh(enterprise)
    log.info("Provisioned enterprise %s (%s) with admin role %s", enterprise.name, enterprise.id, role_name)

    await send_notification(
        notifier,
        email,
        NotificationKind.PASSWORD_SETUP,
        _reset_payload(token, enterprise=enterprise.name),
    )
    return enterprise


async def _require_tenant_admin(db: AsyncSession, actor: User) -> Enterprise:
    """The actor's enterprise, provided the actor may manage it."""
    if not (actor.is_active and not actor.is_blocked and actor.is_tenant_admin and actor.tenant_id):
        raise ForbiddenError()
    enterprise = await db.get(Enterprise, actor.tenant_id)
    if enterprise is None or not enterprise.is_active:
        raise ForbiddenError()
    return enterprise


def check_attenuation(requested: Iterable[GrantSpec], held: dict[str, FeatureAccess]) -> None:
    """
    Raise ForbiddenError unless every requested flag is one the grantor holds.

    ``held`` is the grantor's merged access keyed by feature id.
    """
    for grant in requested:
        if grant.is_empty:
            continue
        access = held.get(grant.feature_id, FeatureAccess())
        if (grant.read and not access.read) or (grant.write and not access.write) or (grant.admin and not access.admin):
            log.info("Attenuation refused: feature %s exceeds grantor's access", grant.feature_id)
            raise ForbiddenError()


async def add_sub_user(db: AsyncSession, tenant_admin: User, seed: UserSeed, notifier: Notifier) -> User:
    """
    Create a user inside the admin's enterprise with a freshly synthesized role.

    The new role never grants more than the admin holds. The user starts
    inactive and becomes active once they set a password.

    Raises:
        ForbiddenError: actor is not an active tenant admin of an active
            enterprise, or requests flags they do not hold
        ConflictError: email already registered
        InvalidReferenceError: a grant names an unknown feature
    """
    enterprise = await _require_tenant_admin(db, tenant_admin)
    email = normalize_email(seed.email)

    if await get_user_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists")

    await validate_feature_ids(db, (grant.feature_id for grant in seed.grants))
    held = await merged_access_by_feature_id(db, await get_user_role_ids(db, tenant_admin.id))
    check_attenuation(seed.grants, held)

    admin_role = await get_role(db, enterprise.admin_role_id)
    role_name = f"{admin_role.name}_USER_{generate_ulid()}"

    try:
        role = await create_role(
            db,
            role_name,
            seed.grants,
            description=f"User of {enterprise.name}",
            tenant_scoped=True,
            commit=False,
        )
        user = User(
            email=email,
            name=seed.name,
            tenant_id=enterprise.id,
            is_tenant_admin=False,
            is_active=False,
        )
        token = start_password_reset(user)
        db.add(user)
        await db.flush()

        await assign_role(db, user.id, role.id, commit=False)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("User with this email already exists") from e
    except Exception:
        await db.rollback()
        raise

    await db.refresh(user)
    log.info("Enterprise %s added user %s with role %s", enterprise.id, user.id, role_name)

    await send_notification(
        notifier,
        email,
        NotificationKind.WELCOME,
        _reset_payload(token, enterprise=enterprise.name),
    )
    return user


async def resend_reset_link(db: AsyncSession, tenant_admin: User, email: str, notifier: Notifier) -> User:
    """Issue a new setup link to a user of the admin's enterprise; older links stop working."""
    enterprise = await _require_tenant_admin(db, tenant_admin)

    user = await get_user_by_email(db, email)
    if user is None or user.tenant_id != enterprise.id:
        raise NotFoundError("User not found")
    if user.is_blocked:
        raise ForbiddenError("User is blocked")

    token = start_password_reset(user)
    await db.commit()
    await db.refresh(user)

    await send_notification(
        notifier,
        user.email,
        NotificationKind.PASSWORD_SETUP,
        _reset_payload(token, enterprise=enterprise.name),
    )
    return user


async def accessible_features(db: AsyncSession, tenant_admin: User) -> AccessProfile:
    """What the admin may delegate to their users: their own resolved access."""
    await _require_tenant_admin(db, tenant_admin)
    return await resolve(db, await get_user_role_ids(db, tenant_admin.id))


# ============================================================================
# Updates
# ============================================================================

def merge_grant_specs(existing: Iterable[GrantSpec], incoming: Iterable[GrantSpec]) -> list[GrantSpec]:
    """Overlay ``incoming`` onto ``existing``; features not mentioned keep their flags."""
    merged = {grant.feature_id: grant for grant in existing}
    for grant in incoming:
        merged[grant.feature_id] = grant
    return list(merged.values())


async def update_enterprise(
    db: AsyncSession,
    enterprise_id: str,
    name: str | None = None,
    description: str | None = None,
    grants: list[GrantSpec] | None = None,
) -> Enterprise:
    """
    Rename an enterprise and/or extend its admin role's grants.

    Renaming renames the admin role to match. Grants are merged per feature
    into the admin role; an all-false grant removes that feature.
    """
    async with enterprise_locks.hold(enterprise_id):
        enterprise = await get_enterprise(db, enterprise_id)
        async with role_locks.hold(enterprise.admin_role_id):
            role = await get_role(db, enterprise.admin_role_id)
            try:
                if name is not None and name.strip() != enterprise.name:
                    name = name.strip()
                    if await get_enterprise_by_name(db, name) is not None:
                        raise ConflictError(f"Enterprise '{name}' already exists")
                    await rename_role(db, role, admin_role_name(name))
                    enterprise.name = name

                if description is not None:
                    enterprise.description = description

                if grants is not None:
                    existing = grant_specs(await get_role_grants(db, role.id))
                    await write_role_grants(db, role, merge_grant_specs(existing, grants))

                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ConflictError("Enterprise or role name already exists") from e
            except Exception:
                await db.rollback()
                raise
            await db.refresh(enterprise)

    log.info("Updated enterprise %s", enterprise.id)
    return enterprise


# ============================================================================
# Activation cascade
# ============================================================================

async def _deactivate(db: AsyncSession, enterprise: Enterprise) -> None:
    enterprise.is_active = False
    await db.execute(
        update(User)
        .where(User.tenant_id == enterprise.id)
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )
    # pending setup links of sub-users die with the account
    await db.execute(
        update(User)
        .where(User.tenant_id == enterprise.id, User.is_tenant_admin.is_(False))
        .values(reset_token_hash=None, reset_token_expires_at=None)
        .execution_options(synchronize_session="fetch")
    )


async def _reactivate(db: AsyncSession, enterprise: Enterprise) -> None:
    enterprise.is_active = True
    await db.execute(
        update(User)
        .where(
            User.tenant_id == enterprise.id,
            User.is_tenant_admin.is_(True),
            User.password_hash.isnot(None),
        )
        .values(is_active=True)
        .execution_options(synchronize_session="fetch")
    )


async def set_enterprise_active(db: AsyncSession, enterprise_id: str, active: bool) -> Enterprise:
    """
    Activate or deactivate an enterprise.

    Deactivation takes every user of the enterprise down with it.
    Reactivation restores the enterprise and those admins who have finished
    password setup; an admin still holding a setup link is activated by
    completing it.
    """
    async with enterprise_locks.hold(enterprise_id):
        enterprise = await get_enterprise(db, enterprise_id)
        try:
            if active:
                await _reactivate(db, enterprise)
            else:
                await _deactivate(db, enterprise)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(enterprise)

    log.info("Enterprise %s %s", enterprise.id, "activated" if active else "deactivated")
    return enterprise


async def set_user_active(
    db: AsyncSession,
    user_id: str,
    active: bool,
    *,
    actor: User | None = None,
) -> User:
    """
    Activate or deactivate a single user.

    Deactivating a tenant admin deactivates their enterprise and every user
    in it. A tenant-scoped ``actor`` must be their enterprise's admin and may
    only target users of that enterprise. Platform actors carry no tenant.
    """
    user = await get_user(db, user_id)
    if actor is not None and actor.tenant_id is not None:
        enterprise = await _require_tenant_admin(db, actor)
        if user.tenant_id != enterprise.id:
            raise ForbiddenError()

    if not active and user.is_tenant_admin and user.tenant_id:
        await set_enterprise_active(db, user.tenant_id, False)
        await db.refresh(user)
        log.info("Deactivated tenant admin %s and enterprise %s", user.id, user.tenant_id)
        return user

    user.is_active = active
    if not active:
        user.reset_token_hash = None
        user.reset_token_expires_at = None
    await db.commit()
    await db.refresh(user)
    log.info("User %s %s", user.id, "activated" if active else "deactivated")
    return user
