"""
Enterprise and enterprise-user API routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from app.features.enterprises import service
from app.features.enterprises.schemas import (
    EnterpriseCreate,
    EnterpriseListResponse,
    EnterpriseResponse,
    EnterpriseStatusUpdate,
    EnterpriseUpdate,
    ResendResetLink,
    SubUserCreate,
    TenantUserListResponse,
)
from app.features.notifications.notifier import Notifier, get_notifier
from app.features.permissions.guard import authorize, get_requirement, require_operation
from app.features.permissions.operations import (
    ADD_ENTERPRISE_USER,
    CREATE_ENTERPRISE,
    GET_ENTERPRISE,
    LIST_DELEGABLE_FEATURES,
    LIST_ENTERPRISE_USERS,
    LIST_ENTERPRISES,
    RESEND_RESET_LINK,
    SET_ENTERPRISE_STATUS,
    SET_USER_STATUS,
    UPDATE_ENTERPRISE,
)
from app.features.permissions.schemas import AccessProfileResponse, to_specs
from app.features.users.auth import TokenClaims
from app.features.users.dependencies import get_current_user, get_optional_token_claims
from app.features.users.models import User
from app.features.users.schemas import StatusRequest, UserResponse


router = APIRouter()


@router.post("", response_model=EnterpriseResponse, status_code=status.HTTP_201_CREATED)
async def create_enterprise(
    body: EnterpriseCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    claims: Annotated[TokenClaims | None, Depends(get_optional_token_claims)],
):
    """
    Register an enterprise and its admin.

    Open to anonymous callers, whose admin role receives the default grants.
    Choosing the grants explicitly requires enterprise management access.
    """
    if body.grants is None:
        grants = await service.default_admin_grants(db)
    else:
        if claims is None:
            raise UnauthorizedError()
        authorize(claims, get_requirement(CREATE_ENTERPRISE))
        grants = to_specs(body.grants)

    seed = service.UserSeed(email=body.email, name=body.admin_name, grants=grants)
    return await service.create_enterprise(db, body.name, seed, notifier, description=body.description)


@router.get(
    "",
    response_model=EnterpriseListResponse,
    dependencies=[Depends(require_operation(LIST_ENTERPRISES))],
)
async def list_enterprises(
    db: Annotated[AsyncSession, Depends(get_db)],
    search: str | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    items, total = await service.list_enterprises(db, search=search, skip=skip, limit=limit)
    return EnterpriseListResponse(items=items, total=total, skip=skip, limit=limit)


# ============================================================================
# Enterprise users (declared before /{enterprise_id})
# ============================================================================

@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operation(ADD_ENTERPRISE_USER))],
)
async def add_user(
    body: SubUserCreate,
    actor: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
):
    """Create a user in the caller's enterprise with a subset of the caller's access."""
    seed = service.UserSeed(email=body.email, name=body.name, grants=to_specs(body.grants))
    return await service.add_sub_user(db, actor, seed, notifier)


@router.get(
    "/users",
    response_model=TenantUserListResponse,
    dependencies=[Depends(require_operation(LIST_ENTERPRISE_USERS))],
)
async def list_users(
    actor: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    enterprise_id: str | None = Query(None, description="Required for callers outside any enterprise"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    if actor.tenant_id is not None:
        if enterprise_id is not None and enterprise_id != actor.tenant_id:
            raise ForbiddenError()
        enterprise_id = actor.tenant_id
    elif enterprise_id is None:
        raise NotFoundError("Enterprise not found")

    await service.get_enterprise(db, enterprise_id)
    items, total = await service.list_tenant_users(db, enterprise_id, skip=skip, limit=limit)
    return TenantUserListResponse(items=items, total=total, skip=skip, limit=limit)


@router.get(
    "/features",
    response_model=AccessProfileResponse,
    dependencies=[Depends(require_operation(LIST_DELEGABLE_FEATURES))],
)
async def delegable_features(
    actor: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Features the caller may hand out to their users, with the flags they hold."""
    profile = await service.accessible_features(db, actor)
    return AccessProfileResponse.from_profile(profile, user_id=actor.id, tenant_id=actor.tenant_id)


@router.post(
    "/users/resend-reset-link",
    response_model=UserResponse,
    dependencies=[Depends(require_operation(RESEND_RESET_LINK))],
)
async def resend_reset_link(
    body: ResendResetLink,
    actor: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
):
    return await service.resend_reset_link(db, actor, body.email, notifier)


@router.patch(
    "/users/{user_id}/status",
    response_model=UserResponse,
    dependencies=[Depends(require_operation(SET_USER_STATUS))],
)
async def set_user_status(
    user_id: str,
    body: StatusRequest,
    actor: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Activate or deactivate a user.

    Deactivating an enterprise admin deactivates the whole enterprise.
    """
    return await service.set_user_active(db, user_id, body.is_active, actor=actor)


# ============================================================================
# Single enterprise
# ============================================================================

@router.get(
    "/{enterprise_id}",
    response_model=EnterpriseResponse,
    dependencies=[Depends(require_operation(GET_ENTERPRISE))],
)
async def get_enterprise(enterprise_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await service.get_enterprise(db, enterprise_id)


@router.patch(
    "/{enterprise_id}",
    response_model=EnterpriseResponse,
    dependencies=[Depends(require_operation(UPDATE_ENTERPRISE))],
)
async def update_enterprise(
    enterprise_id: str,
    body: EnterpriseUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    grants = to_specs(body.grants) if body.grants is not None else None
    return await service.update_enterprise(
        db,
        enterprise_id,
        name=body.name,
        description=body.description,
        grants=grants,
    )


@router.patch(
    "/{enterprise_id}/status",
    response_model=EnterpriseResponse,
    dependencies=[Depends(require_operation(SET_ENTERPRISE_STATUS))],
)
async def set_enterprise_status(
    enterprise_id: str,
    body: EnterpriseStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Deactivation cascades to every user of the enterprise; reactivation restores admins only."""
    return await service.set_enterprise_active(db, enterprise_id, body.is_active)
