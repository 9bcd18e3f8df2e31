"""Schemas for administrative profile management."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from omahub.services.roles import Role


class ProfileOut(BaseModel):
    """Profile as seen by administrators."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: str | None = None
    role: Role
    owned_brands: list[str]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfilesResponse(BaseModel):
    profiles: list[ProfileOut]


class RoleUpdate(BaseModel):
    role: Role


class OwnershipResponse(BaseModel):
    profile_id: str
    owned_brands: list[str]
