"""Request/response schemas for brand endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

BRAND_ID_PATTERN = r"^[a-z0-9][a-z0-9\-]{0,127}$"


class BrandCreate(BaseModel):
    id: str = Field(..., pattern=BRAND_ID_PATTERN, description="URL slug, e.g. brand-7")
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="", max_length=5000)
    category: str | None = Field(default=None, max_length=128)
    location: str | None = Field(default=None, max_length=255)


class BrandUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    category: str | None = Field(default=None, max_length=128)
    location: str | None = Field(default=None, max_length=255)


class BrandOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    category: str | None = None
    location: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BrandsResponse(BaseModel):
    brands: list[BrandOut]


class BrandDeleteResponse(BaseModel):
    id: str
    owners_retracted: int = Field(..., description="Profiles whose ownership of the brand was removed")
