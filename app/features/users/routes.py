"""
Authentication and user account routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Request, status
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.limiter import limiter
from app.features.notifications.notifier import Notifier, get_notifier
from app.features.permissions.guard import require_operation
from app.features.permissions.operations import BLOCK_USER
from app.features.users import service
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import (
    BlockRequest,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    TokenResponse,
    UserResponse,
)


auth_router = APIRouter()
router = APIRouter()


@auth_router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.LOGIN_RATE_LIMIT, key_func=get_remote_address)
async def signup(
    request: Request,
    body: SignupRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a self-service account with the default member role."""
    return await service.signup(db, body.email, body.password, body.name)


@auth_router.post("/login", response_model=TokenResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT, key_func=get_remote_address)
async def login(
    request: Request,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Exchange credentials for an access token carrying the caller's access profile."""
    result = await service.login(db, body.email, body.password)
    return TokenResponse(**{**result, "user": UserResponse.model_validate(result["user"])})


@auth_router.post("/reset-password", response_model=UserResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT, key_func=get_remote_address)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Set a password from a one-time link. First-time setup activates the account."""
    return await service.complete_password_reset(db, body.token, body.password)


@auth_router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT, key_func=get_remote_address)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
):
    await service.request_password_reset(db, body.email, notifier)
    return MessageResponse(message="If the account exists, a reset link has been sent")


@auth_router.get("/me", response_model=UserResponse)
async def get_me(user: Annotated[User, Depends(get_current_user)]):
    """Get current authenticated user's account."""
    return user


@router.put("/change-password", response_model=UserResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Change the signed-in user's password."""
    return await service.change_password(db, user, body.current_password, body.new_password)


@router.patch(
    "/{user_id}/block",
    response_model=UserResponse,
    dependencies=[Depends(require_operation(BLOCK_USER))],
)
async def block_user(
    user_id: str,
    body: BlockRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Block or unblock an account. Blocked users cannot log in."""
    return await service.set_user_blocked(db, user_id, body.blocked)
