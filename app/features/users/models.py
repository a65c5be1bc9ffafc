"""
User model with ULID primary keys.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    User account.

    Role membership lives in the ``user_roles`` table; permissions are never
    stored on the user. ``tenant_id`` is set for enterprise admins and the
    sub-users they provision.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Null until the user completes the password setup flow
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Tenant scope
    tenant_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("enterprises.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    is_tenant_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # One-time password setup/reset token (only the SHA-256 is stored)
    reset_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, tenant_id={self.tenant_id})>"
