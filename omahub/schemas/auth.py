"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from omahub.services.roles import Role


class LoginRequest(BaseModel):
    """Password pair for sign-in."""

    email: str = Field(..., min_length=3, max_length=320, description="Email address")
    password: str = Field(..., min_length=1, max_length=128, description="Password")
    next: str | None = Field(
        default=None,
        max_length=256,
        description="Intended in-app destination after sign-in (relative path)",
    )


class SignupRequest(BaseModel):
    """Password pair for registration."""

    email: str = Field(..., min_length=3, max_length=320, description="Email address")
    password: str = Field(..., min_length=6, max_length=128, description="Password")


class SessionResponse(BaseModel):
    """Summary of the session set as a cookie after sign-in. The token itself is not echoed."""

    identity_id: str
    email: str
    role: Role
    expires_at: datetime
    redirect_to: str = Field(..., description="Validated in-app path to continue to")


class SignupResponse(BaseModel):
    identity_id: str | None = None
    confirmation_required: bool
    message: str


class CurrentPrincipal(BaseModel):
    """Authenticated caller resolved once per request (identity, role, ownership)."""

    model_config = ConfigDict(frozen=True)

    identity_id: str
    email: str
    role: Role
    owned_brands: frozenset[str] = Field(default_factory=frozenset)
    profile_available: bool = Field(
        default=True,
        description="False when the role came from the legacy fallback because the profile could not be read",
    )
