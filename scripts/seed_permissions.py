"""
Seed script to populate the feature catalog and the platform admin.

Run this script after database initialization to create:
- The default catalog features
- The super admin role, holding every flag on every feature
- The default member role
- A bootstrap admin account (when BOOTSTRAP_ADMIN_EMAIL/PASSWORD are set)

Safe to run repeatedly; existing rows are left alone.

Usage:
    uv run python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.catalog.models import Feature
from app.features.catalog.service import ensure_feature
from app.features.permissions.grants import (
    assign_role,
    create_role,
    get_or_create_member_role,
    get_role_by_name,
    replace_role_grants,
)
from app.features.permissions.models import Role
from app.features.permissions.operations import PLATFORM_FEATURES
from app.features.permissions.types import GrantSpec
from app.features.users.models import User
from app.features.users.password import hash_password
from app.features.users.service import get_user_by_email, normalize_email
from app.utils import get_logger


log = get_logger(__name__)


# Marketplace features tenants build their roles from
DOMAIN_FEATURES = [
    "employee-management",
    "vendor-management",
    "vendor-category",
    "venue-management",
    "venue-booking",
    "event-management",
    "service-category",
    "additional-service",
    "cuisine",
    "meal-type",
    "form-builder",
]


async def seed_features(db: AsyncSession) -> list[Feature]:
    log.info("Creating catalog features...")
    features = []
    for name in [*PLATFORM_FEATURES, *DOMAIN_FEATURES]:
        features.append(await ensure_feature(db, name))
    log.info("Catalog holds %d seeded feature(s)", len(features))
    return features


async def seed_super_admin_role(db: AsyncSession, features: list[Feature]) -> Role:
    """Create the super admin role, or top up its grants to every seeded feature."""
    grants = [GrantSpec(feature_id=feature.id, read=True, write=True, admin=True) for feature in features]

    role = await get_role_by_name(db, config.SUPER_ADMIN_ROLE)
    if role is None:
        role = await create_role(db, config.SUPER_ADMIN_ROLE, grants, description="Platform administrator")
        log.info("Created role '%s'", role.name)
    else:
        role = await replace_role_grants(db, role.id, grants)
        log.info("Refreshed grants of role '%s'", role.name)
    return role


async def seed_bootstrap_admin(db: AsyncSession, role: Role) -> User | None:
    if not (config.BOOTSTRAP_ADMIN_EMAIL and config.BOOTSTRAP_ADMIN_PASSWORD):
        log.info("BOOTSTRAP_ADMIN_EMAIL/PASSWORD not set, skipping admin account")
        return None

    user = await get_user_by_email(db, config.BOOTSTRAP_ADMIN_EMAIL)
    if user is None:
        user = User(
            email=normalize_email(config.BOOTSTRAP_ADMIN_EMAIL),
            name="Administrator",
            password_hash=hash_password(config.BOOTSTRAP_ADMIN_PASSWORD),
            is_active=True,
        )
        db.add(user)
        await db.flush()
        log.info("Created bootstrap admin %s", user.email)
    else:
        log.debug("Bootstrap admin %s already exists", user.email)

    await assign_role(db, user.id, role.id)
    return user


async def main():
    """Main function to seed the catalog and platform roles."""
    log.info("Starting seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            features = await seed_features(db)
            role = await seed_super_admin_role(db, features)
            await get_or_create_member_role(db)
            await seed_bootstrap_admin(db, role)
        except Exception as e:
            log.error("Error while seeding: %s", e, exc_info=True)
            await db.rollback()
            raise

    log.info("Seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
