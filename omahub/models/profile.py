"""ORM model for durable authorization profiles (one per identity)."""

from sqlalchemy import JSON, Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB

from omahub.models.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
OwnedBrandsType = JSON().with_variant(JSONB(), "postgresql")


class Profile(Base):
    """
    Authorization record keyed by the identity backend's user id.

    The primary key doubles as the uniqueness constraint that serialises
    first-sight creation. role: 'user', 'brand_admin', 'admin' or 'super_admin'.
    owned_brands: brand ids this profile may manage (meaningful for brand_admin).
    """

    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    email = Column(String(320), nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String(2048), nullable=True)
    role = Column(String(32), nullable=False, default="user", server_default="user")
    owned_brands = Column(OwnedBrandsType, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
