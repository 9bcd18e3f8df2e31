"""ORM model for brands listed in the directory."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func

from omahub.models.base import Base


class Brand(Base):
    """
    A brand that brand admins can be granted ownership of.

    created_by references the profile that created the brand; it is nulled when
    that profile is deleted.
    """

    __tablename__ = "brands"

    id = Column(String(128), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(128), nullable=True, index=True)
    location = Column(String(255), nullable=True)
    created_by = Column(
        String(64),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
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
