"""
Role and permission grant store.

Grant sets are always written whole: replacing a role's grants deletes every
existing row for the role and inserts the new set, so stale grants never
accumulate. Callers that want additive behaviour read, merge and write.
"""
from collections.abc import Iterable
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.exceptions import ConflictError, InvalidReferenceError, NotFoundError
from app.core.locks import role_locks
from app.features.catalog.models import Feature
from app.features.enterprises.models import Enterprise
from app.features.permissions.models import PermissionGrant, Role, user_roles
from app.features.permissions.types import GrantSpec
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Grant helpers
# ============================================================================

def filter_grants(grants: Iterable[GrantSpec]) -> list[GrantSpec]:
    """
    Drop all-false grants and OR-merge repeated features.

    Order of first appearance is kept so derived feature lists are stable.
    """
    merged: dict[str, GrantSpec] = {}
    for grant in grants:
        if grant.is_empty:
            continue
        previous = merged.get(grant.feature_id)
        if previous is not None:
            grant = GrantSpec(
                feature_id=grant.feature_id,
                read=previous.read or grant.read,
                write=previous.write or grant.write,
                admin=previous.admin or grant.admin,
            )
        merged[grant.feature_id] = grant
    return list(merged.values())


async def validate_feature_ids(db: AsyncSession, feature_ids: Iterable[str]) -> None:
    wanted = set(feature_ids)
    if not wanted:
        return
    result = await db.execute(select(Feature.id).where(Feature.id.in_(wanted)))
    found = set(result.scalars().all())
    if found != wanted:
        log.debug("Unknown feature ids: %s", sorted(wanted - found))
        raise InvalidReferenceError("One or more feature ids are invalid")


def _grant_rows(role_id: str, grants: list[GrantSpec]) -> list[PermissionGrant]:
    return [
        PermissionGrant(
            role_id=role_id,
            feature_id=grant.feature_id,
            read=grant.read,
            write=grant.write,
            admin=grant.admin,
        )
        for grant in grants
    ]


def grant_specs(rows: Iterable[PermissionGrant]) -> list[GrantSpec]:
    """Convert stored grant rows back into specs."""
    return [
        GrantSpec(feature_id=row.feature_id, read=row.read, write=row.write, admin=row.admin)
        for row in rows
    ]


# ============================================================================
# Role lookups
# ============================================================================

async def get_role(db: AsyncSession, role_id: str) -> Role:
    role = await db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return role


async def get_role_by_name(db: AsyncSession, name: str) -> Role | None:
    result = await db.execute(select(Role).where(Role.name == name))
    return result.scalar_one_or_none()


async def list_roles(
    db: AsyncSession,
    name: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Role], int]:
    stmt = select(Role)
    count_stmt = select(func.count()).select_from(Role)
    if name:
        stmt = stmt.where(Role.name.ilike(f"%{name}%"))
        count_stmt = count_stmt.where(Role.name.ilike(f"%{name}%"))

    total = await db.scalar(count_stmt)
    result = await db.execute(stmt.order_by(Role.name).offset(skip).limit(limit))
    return list(result.scalars().all()), total or 0


async def get_role_grants(db: AsyncSession, role_id: str) -> list[PermissionGrant]:
    result = await db.execute(
        select(PermissionGrant)
        .where(PermissionGrant.role_id == role_id)
        .order_by(PermissionGrant.feature_id)
    )
    return list(result.scalars().all())


# ============================================================================
# Role mutations
# ============================================================================

async def create_role(
    db: AsyncSession,
    name: str,
    grants: Iterable[GrantSpec],
    *,
    description: str | None = None,
    tenant_scoped: bool = False,
    commit: bool = True,
) -> Role:
    """
    Create a role with its grants.

    All-false grants are dropped before ``feature_ids`` is derived. With
    ``commit=False`` the role is only flushed, so it joins the caller's
    transaction and disappears with it on rollback.

    Raises:
        ConflictError: a role with this name exists
        InvalidReferenceError: a grant names an unknown feature
    """
    name = name.strip()
    grants = list(grants)

    if await get_role_by_name(db, name) is not None:
        raise ConflictError(f"Role '{name}' already exists")

    await validate_feature_ids(db, (grant.feature_id for grant in grants))
    kept = filter_grants(grants)

    role = Role(
        name=name,
        description=description,
        feature_ids=[grant.feature_id for grant in kept],
        is_tenant_scoped=tenant_scoped,
    )
    db.add(role)
    try:
        await db.flush()
        db.add_all(_grant_rows(role.id, kept))
        await db.flush()
    except IntegrityError as e:
        if commit:
            await db.rollback()
        raise ConflictError(f"Role '{name}' already exists") from e

    if commit:
        await db.commit()
        await db.refresh(role)

    log.info("Created role %s with %d grant(s)", role.name, len(kept))
    return role


async def write_role_grants(db: AsyncSession, role: Role, grants: Iterable[GrantSpec]) -> Role:
    """
    Replace a role's grant rows inside the caller's transaction.

    Does not lock or commit; ``replace_role_grants`` is the standalone entry point.
    """
    grants = list(grants)
    await validate_feature_ids(db, (grant.feature_id for grant in grants))
    kept = filter_grants(grants)

    await db.execute(delete(PermissionGrant).where(PermissionGrant.role_id == role.id))
    db.add_all(_grant_rows(role.id, kept))
    role.feature_ids = [grant.feature_id for grant in kept]
    await db.flush()
    return role


async def replace_role_grants(db: AsyncSession, role_id: str, grants: Iterable[GrantSpec]) -> Role:
    """
    Atomically replace every grant of a role.

    Runs under the role's lock as a single transaction, so concurrent
    replacements of the same role never interleave.
    """
    async with role_locks.hold(role_id):
        role = await get_role(db, role_id)
        try:
            await write_role_grants(db, role, grants)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(role)

    log.info("Replaced grants of role %s (%d feature(s))", role.name, len(role.feature_ids))
    return role


async def remove_feature_from_role(db: AsyncSession, role_id: str, feature_id: str) -> Role:
    """Remove the single grant for ``feature_id`` and recompute the role's features."""
    async with role_locks.hold(role_id):
        role = await get_role(db, role_id)
        result = await db.execute(
            select(PermissionGrant).where(
                PermissionGrant.role_id == role_id,
                PermissionGrant.feature_id == feature_id,
            )
        )
        grant = result.scalar_one_or_none()
        if grant is None:
            raise NotFoundError("Feature is not granted to this role")

        await db.delete(grant)
        await db.flush()
        remaining = await get_role_grants(db, role_id)
        role.feature_ids = [row.feature_id for row in remaining if row.read or row.write or row.admin]
        await db.commit()
        await db.refresh(role)

    log.info("Removed feature %s from role %s", feature_id, role.name)
    return role


async def rename_role(db: AsyncSession, role: Role, name: str) -> Role:
    """Rename a role inside the caller's transaction."""
    name = name.strip()
    if name == role.name:
        return role
    if await get_role_by_name(db, name) is not None:
        raise ConflictError(f"Role '{name}' already exists")
    role.name = name
    await db.flush()
    return role


async def update_role(
    db: AsyncSession,
    role_id: str,
    name: str | None = None,
    description: str | None = None,
) -> Role:
    async with role_locks.hold(role_id):
        role = await get_role(db, role_id)
        try:
            if name is not None:
                await rename_role(db, role, name)
            if description is not None:
                role.description = description
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError(f"Role '{name}' already exists") from e
        except Exception:
            await db.rollback()
            raise
        await db.refresh(role)
    return role


async def delete_role(db: AsyncSession, role_id: str) -> None:
    """
    Hard-delete a role, its grants and its memberships.

    Blocked while the role is an enterprise's admin role or any active user
    still holds it.
    """
    async with role_locks.hold(role_id):
        role = await get_role(db, role_id)
        owner = await db.scalar(select(Enterprise.id).where(Enterprise.admin_role_id == role_id))
        if owner is not None:
            raise ConflictError("Role is an enterprise admin role and cannot be deleted")

        active_holders = await db.scalar(
            select(func.count())
            .select_from(user_roles)
            .join(User, User.id == user_roles.c.user_id)
            .where(user_roles.c.role_id == role_id, User.is_active.is_(True))
        )
        if active_holders:
            raise ConflictError("Role is assigned to active users and cannot be deleted")

        await db.execute(delete(PermissionGrant).where(PermissionGrant.role_id == role_id))
        await db.execute(delete(user_roles).where(user_roles.c.role_id == role_id))
        await db.delete(role)
        await db.commit()

    log.info("Deleted role %s", role.name)


# ============================================================================
# Memberships
# ============================================================================

async def get_or_create_member_role(db: AsyncSession) -> Role:
    """Return the default member role, creating it (with no grants) on first use."""
    role = await get_role_by_name(db, config.DEFAULT_MEMBER_ROLE)
    if role is not None:
        return role
    try:
        return await create_role(
            db,
            config.DEFAULT_MEMBER_ROLE,
            [],
            description="Default role for self-service signups",
        )
    except ConflictError:
        role = await get_role_by_name(db, config.DEFAULT_MEMBER_ROLE)
        if role is None:
            raise
        return role


async def get_user_role_ids(db: AsyncSession, user_id: str) -> list[str]:
    result = await db.execute(
        select(user_roles.c.role_id)
        .where(user_roles.c.user_id == user_id)
        .order_by(user_roles.c.role_id)
    )
    return list(result.scalars().all())


async def assign_role(db: AsyncSession, user_id: str, role_id: str, *, commit: bool = True) -> None:
    """Give ``user_id`` the role ``role_id``; assigning an already-held role is a no-op."""
    await get_role(db, role_id)
    if role_id in await get_user_role_ids(db, user_id):
        return
    await db.execute(insert(user_roles).values(user_id=user_id, role_id=role_id))
    if commit:
        await db.commit()


async def revoke_role(db: AsyncSession, user_id: str, role_id: str) -> None:
    result = await db.execute(
        delete(user_roles).where(user_roles.c.user_id == user_id, user_roles.c.role_id == role_id)
    )
    if result.rowcount == 0:
        raise NotFoundError("User does not hold this role")
    await db.commit()
