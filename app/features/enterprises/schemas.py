"""
Pydantic schemas for enterprises and their users.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.features.permissions.schemas import GrantIn
from app.features.users.schemas import UserResponse


class EnterpriseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Enterprise name, e.g. 'Acme'")
    email: EmailStr = Field(..., description="Email of the enterprise admin")
    admin_name: str = Field("", max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    grants: Optional[List[GrantIn]] = Field(
        None,
        description="Admin role grants; omit to use the self-service defaults",
    )


class EnterpriseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    grants: Optional[List[GrantIn]] = Field(
        None,
        description="Merged into the admin role per feature; all-false removes a feature",
    )


class EnterpriseStatusUpdate(BaseModel):
    is_active: bool


class EnterpriseResponse(BaseModel):
    id: str
    name: str
    email: str
    description: Optional[str] = None
    admin_role_id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EnterpriseListResponse(BaseModel):
    items: List[EnterpriseResponse]
    total: int
    skip: int
    limit: int


class SubUserCreate(BaseModel):
    email: EmailStr
    name: str = Field("", max_length=255)
    grants: List[GrantIn] = Field(default_factory=list)


class ResendResetLink(BaseModel):
    email: EmailStr


class TenantUserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    skip: int
    limit: int
