"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness plus database reachability for load balancers."""

    status: Literal["ok", "degraded"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (dev or prod)")
    database: Literal["connected", "disconnected"] = Field(
        description="Profile store connectivity; roles fall back to the legacy allowlist when disconnected",
    )
    legacy_allowlist_active: bool = Field(
        description="True while legacy admin email allowlists are configured",
    )
