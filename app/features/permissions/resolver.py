"""
Permission resolution.

Turns a set of role ids into an AccessProfile by OR-merging every grant of
every role, per feature and per flag.

Role ids that do not exist contribute nothing. Authentication must not fail
on a dangling reference, and the result only ever errs toward less access.
"""
from collections.abc import Iterable
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.catalog.models import Feature
from app.features.permissions.models import PermissionGrant, Role
from app.features.permissions.types import AccessProfile, FeatureAccess
from app.utils import get_logger


log = get_logger(__name__)


def merge_grants(grants: Iterable[PermissionGrant]) -> dict[str, FeatureAccess]:
    """OR-merge grant rows into one FeatureAccess per feature id."""
    merged: dict[str, FeatureAccess] = {}
    for grant in grants:
        access = FeatureAccess(read=grant.read, write=grant.write, admin=grant.admin)
        if not access.any:
            continue
        previous = merged.get(grant.feature_id)
        merged[grant.feature_id] = previous | access if previous else access
    return merged


async def merged_access_by_feature_id(db: AsyncSession, role_ids: Iterable[str]) -> dict[str, FeatureAccess]:
    """Merged flags keyed by feature id, for callers that compare against grant specs."""
    role_ids = set(role_ids)
    if not role_ids:
        return {}

    result = await db.execute(
        select(PermissionGrant)
        .join(Role, Role.id == PermissionGrant.role_id)
        .where(PermissionGrant.role_id.in_(role_ids))
    )
    return merge_grants(result.scalars().all())


async def resolve(db: AsyncSession, role_ids: Iterable[str]) -> AccessProfile:
    """
    Resolve role ids into the effective access profile.

    Deterministic and read-only. Never raises for data reasons: unknown role
    ids are skipped.
    """
    role_ids = set(role_ids)
    merged = await merged_access_by_feature_id(db, role_ids)
    if not merged:
        return AccessProfile()

    result = await db.execute(select(Feature.id, Feature.name).where(Feature.id.in_(merged.keys())))
    names = {feature_id: name for feature_id, name in result.all()}

    features = {names[feature_id]: access for feature_id, access in merged.items() if feature_id in names}
    log.debug("Resolved %d role(s) to %d feature(s)", len(role_ids), len(features))
    return AccessProfile(features=features)
