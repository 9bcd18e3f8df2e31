"""Pydantic request/response schemas."""

from omahub.schemas.auth import (
    CurrentPrincipal,
    LoginRequest,
    SessionResponse,
    SignupRequest,
    SignupResponse,
)
from omahub.schemas.brands import (
    BrandCreate,
    BrandDeleteResponse,
    BrandOut,
    BrandsResponse,
    BrandUpdate,
)
from omahub.schemas.health import HealthResponse
from omahub.schemas.profiles import (
    OwnershipResponse,
    ProfileOut,
    ProfilesResponse,
    RoleUpdate,
)

__all__ = [
    "BrandCreate",
    "BrandDeleteResponse",
    "BrandOut",
    "BrandUpdate",
    "BrandsResponse",
    "CurrentPrincipal",
    "HealthResponse",
    "LoginRequest",
    "OwnershipResponse",
    "ProfileOut",
    "ProfilesResponse",
    "RoleUpdate",
    "SessionResponse",
    "SignupRequest",
    "SignupResponse",
]
