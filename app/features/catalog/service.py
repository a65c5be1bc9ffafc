"""
Feature catalog operations.
"""
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.features.catalog.models import Feature
from app.features.permissions.models import PermissionGrant
from app.features.permissions.types import normalize_feature_name
from app.utils import get_logger


log = get_logger(__name__)


def catalog_key(name: str) -> str:
    """Normalize a feature name into its catalog slug (lowercase, spaces to underscores)."""
    return normalize_feature_name(name)


async def get_feature_by_key(db: AsyncSession, key: str) -> Feature | None:
    result = await db.execute(select(Feature).where(Feature.catalog_key == key))
    return result.scalar_one_or_none()


async def ensure_feature(db: AsyncSession, name: str) -> Feature:
    """
    Get or create the feature for ``name``.

    Idempotent: any name that normalizes to an existing catalog key returns
    the existing feature instead of failing.
    """
    key = catalog_key(name)
    feature = await get_feature_by_key(db, key)
    if feature is not None:
        return feature

    feature = Feature(name=name.strip(), catalog_key=key)
    db.add(feature)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same key
        await db.rollback()
        feature = await get_feature_by_key(db, key)
        if feature is None:
            raise
        return feature

    await db.refresh(feature)
    log.info("Created feature %s (%s)", feature.name, feature.catalog_key)
    return feature


async def create_feature(db: AsyncSession, name: str) -> Feature:
    """Explicitly create a feature; unlike ``ensure_feature`` a duplicate is a conflict."""
    key = catalog_key(name)
    if await get_feature_by_key(db, key) is not None:
        raise ConflictError("Feature already exists")
    return await ensure_feature(db, name)


async def get_feature(db: AsyncSession, feature_id: str) -> Feature:
    feature = await db.get(Feature, feature_id)
    if feature is None:
        raise NotFoundError("Feature not found")
    return feature


async def list_features(db: AsyncSession, skip: int = 0, limit: int = 50) -> tuple[list[Feature], int]:
    total = await db.scalar(select(func.count()).select_from(Feature))
    result = await db.execute(select(Feature).order_by(Feature.name).offset(skip).limit(limit))
    return list(result.scalars().all()), total or 0


async def _is_referenced(db: AsyncSession, feature_id: str) -> bool:
    count = await db.scalar(
        select(func.count()).select_from(PermissionGrant).where(PermissionGrant.feature_id == feature_id)
    )
    return bool(count)


async def rename_feature(db: AsyncSession, feature_id: str, name: str) -> Feature:
    """Rename an unreferenced feature. Features are immutable once granted."""
    feature = await get_feature(db, feature_id)
    if await _is_referenced(db, feature_id):
        raise ConflictError("Feature is granted to one or more roles and cannot be renamed")

    key = catalog_key(name)
    existing = await get_feature_by_key(db, key)
    if existing is not None and existing.id != feature.id:
        raise ConflictError("Feature already exists")

    feature.name = name.strip()
    feature.catalog_key = key
    await db.commit()
    await db.refresh(feature)
    return feature


async def delete_feature(db: AsyncSession, feature_id: str) -> None:
    feature = await get_feature(db, feature_id)
    if await _is_referenced(db, feature_id):
        raise ConflictError("Feature is granted to one or more roles and cannot be deleted")
    await db.delete(feature)
    await db.commit()
    log.info("Deleted feature %s", feature.catalog_key)
