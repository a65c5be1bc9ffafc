"""
Pydantic schemas for role and grant management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.features.permissions.types import AccessProfile, GrantSpec


# ============================================================================
# Grant Schemas
# ============================================================================

class GrantIn(BaseModel):
    """Flags requested for one feature. An all-false grant is ignored."""
    feature_id: str = Field(..., min_length=1, max_length=26)
    read: bool = False
    write: bool = False
    admin: bool = False

    def to_spec(self) -> GrantSpec:
        return GrantSpec(feature_id=self.feature_id, read=self.read, write=self.write, admin=self.admin)


def to_specs(grants: List[GrantIn]) -> List[GrantSpec]:
    return [grant.to_spec() for grant in grants]


class GrantResponse(BaseModel):
    feature_id: str
    read: bool
    write: bool
    admin: bool

    model_config = ConfigDict(from_attributes=True)


class GrantsReplace(BaseModel):
    """Full replacement set; features left out lose their grant."""
    grants: List[GrantIn] = Field(default_factory=list)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000)
    grants: List[GrantIn] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=1000)


class RoleResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    feature_ids: List[str]
    is_tenant_scoped: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithGrants(RoleResponse):
    grants: List[GrantResponse] = []


class RoleListResponse(BaseModel):
    items: List[RoleResponse]
    total: int
    skip: int
    limit: int


# ============================================================================
# Access Profile Schemas
# ============================================================================

class FeatureAccessItem(BaseModel):
    feature: str
    read: bool
    write: bool
    admin: bool


class AccessProfileResponse(BaseModel):
    """The caller's effective access as carried in their token."""
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    roles: List[str] = []
    profile: List[FeatureAccessItem]
    expires_at: Optional[datetime] = None

    @classmethod
    def from_profile(cls, profile: AccessProfile, **kwargs) -> "AccessProfileResponse":
        return cls(profile=[FeatureAccessItem(**item) for item in profile.to_claim()], **kwargs)
