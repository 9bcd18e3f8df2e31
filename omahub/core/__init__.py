"""Core app configuration and database."""

from omahub.core.config import get_settings, settings
from omahub.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
