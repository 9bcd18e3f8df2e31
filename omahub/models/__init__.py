"""SQLAlchemy ORM models."""

from omahub.models.base import Base
from omahub.models.brand import Brand
from omahub.models.profile import Profile

__all__ = ["Base", "Brand", "Profile"]
