"""
Role and PermissionGrant models.

This module implements the stored half of the capability model:
- Roles are named bundles of grants, global or tenant scoped
- A grant carries independent read/write/admin flags for one (role, feature) pair
- Users reference roles through the user_roles association table

A user's effective permissions are never stored; see resolver.py.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Table, Column, JSON, Text, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


# ============================================================================
# Association Tables
# ============================================================================

# User-Role membership (users hold roles by reference)
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


# ============================================================================
# Core Models
# ============================================================================

class Role(Base, TimestampMixin):
    """
    Named bundle of feature grants.

    ``feature_ids`` is derived from the role's grants and recomputed whenever
    they change; it only ever lists features with at least one true flag.
    ``is_tenant_scoped`` marks roles synthesized for an enterprise (its admin
    role and the roles minted for its sub-users).
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(150), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    feature_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_tenant_scoped: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, tenant_scoped={self.is_tenant_scoped})>"


class PermissionGrant(Base, TimestampMixin):
    """
    Read/write/admin flags a role holds on one feature.

    Rows with every flag false are never written; "no grant" and
    "all-false grant" mean the same thing.
    """
    __tablename__ = "permission_grants"
    __table_args__ = (
        UniqueConstraint("role_id", "feature_id", name="uq_permission_grant_role_feature"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    feature_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("features.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    write: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<PermissionGrant(role_id={self.role_id}, feature_id={self.feature_id}, "
            f"read={self.read}, write={self.write}, admin={self.admin})>"
        )
