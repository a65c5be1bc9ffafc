"""
Role and grant management API routes.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions import grants as service
from app.features.permissions.guard import require_operation
from app.features.permissions.operations import (
    CREATE_ROLE,
    DELETE_ROLE,
    GET_ROLE,
    LIST_ROLES,
    REMOVE_ROLE_FEATURE,
    REPLACE_ROLE_GRANTS,
    UPDATE_ROLE,
)
from app.features.permissions.schemas import (
    AccessProfileResponse,
    GrantResponse,
    GrantsReplace,
    RoleCreate,
    RoleListResponse,
    RoleResponse,
    RoleUpdate,
    RoleWithGrants,
    to_specs,
)
from app.features.users.auth import TokenClaims
from app.features.users.dependencies import get_token_claims
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _with_grants(db: AsyncSession, role) -> RoleWithGrants:
    rows = await service.get_role_grants(db, role.id)
    return RoleWithGrants(
        **RoleResponse.model_validate(role).model_dump(),
        grants=[GrantResponse.model_validate(row) for row in rows],
    )


@router.get("/profile/me", response_model=AccessProfileResponse)
async def my_profile(claims: TokenClaims = Depends(get_token_claims)):
    """The caller's access profile exactly as embedded in their token."""
    return AccessProfileResponse.from_profile(
        claims.profile,
        user_id=claims.user_id,
        tenant_id=claims.tenant_id,
        roles=claims.roles,
        expires_at=claims.expires_at,
    )


@router.post(
    "",
    response_model=RoleWithGrants,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operation(CREATE_ROLE))],
)
async def create_role(body: RoleCreate, db: AsyncSession = Depends(get_db)):
    """Create a role with an initial grant set."""
    role = await service.create_role(db, body.name, to_specs(body.grants), description=body.description)
    return await _with_grants(db, role)


@router.get("", response_model=RoleListResponse, dependencies=[Depends(require_operation(LIST_ROLES))])
async def list_roles(
    name: str | None = Query(None, description="Case-insensitive name filter"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    items, total = await service.list_roles(db, name=name, skip=skip, limit=limit)
    return RoleListResponse(items=items, total=total, skip=skip, limit=limit)


@router.get("/{role_id}", response_model=RoleWithGrants, dependencies=[Depends(require_operation(GET_ROLE))])
async def get_role(role_id: str, db: AsyncSession = Depends(get_db)):
    role = await service.get_role(db, role_id)
    return await _with_grants(db, role)


@router.patch("/{role_id}", response_model=RoleResponse, dependencies=[Depends(require_operation(UPDATE_ROLE))])
async def update_role(role_id: str, body: RoleUpdate, db: AsyncSession = Depends(get_db)):
    return await service.update_role(db, role_id, name=body.name, description=body.description)


@router.put(
    "/{role_id}/grants",
    response_model=RoleWithGrants,
    dependencies=[Depends(require_operation(REPLACE_ROLE_GRANTS))],
)
async def replace_grants(role_id: str, body: GrantsReplace, db: AsyncSession = Depends(get_db)):
    """
    Replace the role's whole grant set.

    Existing grants not present in the body are removed. Holders see the
    change once their current token expires.
    """
    role = await service.replace_role_grants(db, role_id, to_specs(body.grants))
    return await _with_grants(db, role)


@router.delete(
    "/{role_id}/features/{feature_id}",
    response_model=RoleWithGrants,
    dependencies=[Depends(require_operation(REMOVE_ROLE_FEATURE))],
)
async def remove_feature(role_id: str, feature_id: str, db: AsyncSession = Depends(get_db)):
    role = await service.remove_feature_from_role(db, role_id, feature_id)
    return await _with_grants(db, role)


@router.delete(
    "/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operation(DELETE_ROLE))],
)
async def delete_role(role_id: str, db: AsyncSession = Depends(get_db)):
    await service.delete_role(db, role_id)
