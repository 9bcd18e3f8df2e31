"""Public brand directory: read-only, unauthenticated, not gated."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from omahub.core.database import get_db
from omahub.models import Brand
from omahub.schemas.brands import BrandOut, BrandsResponse

router = APIRouter()


@router.get("", response_model=BrandsResponse)
def list_brands(
    db: Annotated[Session, Depends(get_db)],
    category: Annotated[str | None, Query(max_length=128)] = None,
) -> BrandsResponse:
    """List all brands, optionally filtered by category."""
    query = db.query(Brand)
    if category:
        query = query.filter(Brand.category == category)
    brands = query.order_by(Brand.name).all()
    return BrandsResponse(brands=[BrandOut.model_validate(b) for b in brands])


@router.get("/{brand_id}", response_model=BrandOut)
def get_brand(
    brand_id: str,
    db: Annotated[Session, Depends(get_db)],
) -> BrandOut:
    brand = db.get(Brand, brand_id)
    if brand is None:
        raise HTTPException(status_code=404, detail="Brand not found")
    return BrandOut.model_validate(brand)
