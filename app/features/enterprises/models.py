"""
Enterprise (tenant) model.

Every enterprise owns exactly one admin role, created in the same
transaction as the enterprise itself. Enterprises are deactivated, never
deleted.
"""
from sqlalchemy import String, ForeignKey, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Enterprise(Base, TimestampMixin):
    """Tenant organization with its own admin role and scoped users."""
    __tablename__ = "enterprises"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # 1:1 with the role synthesized for the enterprise admin
    admin_role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Enterprise(id={self.id}, name={self.name!r}, active={self.is_active})>"
