"""
Feature catalog model.

A feature is a named capability that roles can be granted on
(e.g. "user-management", "venue-booking").
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Feature(Base, TimestampMixin):
    """
    Catalog entry for a grantable capability.

    ``catalog_key`` is the normalized slug of ``name`` and is what uniqueness
    is enforced on, so "Venue Booking" and "venue booking" are the same feature.
    """
    __tablename__ = "features"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    catalog_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Feature(id={self.id}, name={self.name!r}, key={self.catalog_key})>"
