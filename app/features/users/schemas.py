"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field("", max_length=255)


class SignupRequest(UserBase):
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class ResetPasswordRequest(BaseModel):
    """Completes the one-time password setup or reset link."""
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str

    @field_validator('confirm_password')
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        """New password and confirmation must be identical."""
        if v != info.data.get('new_password'):
            raise ValueError('New password and confirm password do not match')
        return v


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    tenant_id: str | None = None
    is_tenant_admin: bool
    is_active: bool
    is_blocked: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class BlockRequest(BaseModel):
    blocked: bool


class StatusRequest(BaseModel):
    is_active: bool


class MessageResponse(BaseModel):
    message: str
