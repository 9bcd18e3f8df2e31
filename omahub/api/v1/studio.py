"""Studio brand management. Every write consults the authorization gate first."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from omahub.api.v1.auth import get_current_principal, require_brand_access
from omahub.core.database import get_db
from omahub.models import Brand
from omahub.schemas.auth import CurrentPrincipal
from omahub.schemas.brands import (
    BrandCreate,
    BrandDeleteResponse,
    BrandOut,
    BrandsResponse,
    BrandUpdate,
)
from omahub.services.authorization import Action, visible_brands
from omahub.services.ownership import BrandNotFound, OwnershipRegistry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=BrandsResponse)
def list_studio_brands(
    principal: Annotated[CurrentPrincipal, Depends(get_current_principal)],
    db: Annotated[Session, Depends(get_db)],
) -> BrandsResponse:
    """Brands the caller may manage: all for administrators, owned ones for brand admins."""
    existing_ids = db.execute(select(Brand.id)).scalars().all()
    ids = visible_brands(principal.role, principal.owned_brands, existing_ids)
    if not ids:
        return BrandsResponse(brands=[])
    brands = db.query(Brand).filter(Brand.id.in_(ids)).order_by(Brand.name).all()
    return BrandsResponse(brands=[BrandOut.model_validate(b) for b in brands])


@router.post("", response_model=BrandOut, status_code=status.HTTP_201_CREATED)
def create_brand(
    body: BrandCreate,
    principal: Annotated[CurrentPrincipal, Depends(get_current_principal)],
    db: Annotated[Session, Depends(get_db)],
) -> BrandOut:
    """Create a brand (administrators only; brand admins manage existing brands)."""
    require_brand_access(principal, Action.CREATE, None)
    brand = Brand(
        id=body.id,
        name=body.name,
        description=body.description,
        category=body.category,
        location=body.location,
        created_by=principal.identity_id if principal.profile_available else None,
    )
    db.add(brand)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Brand id already exists")
    db.refresh(brand)
    logger.info("Brand created", extra={"brand_id": brand.id, "identity_id": principal.identity_id})
    return BrandOut.model_validate(brand)


@router.patch("/{brand_id}", response_model=BrandOut)
def update_brand(
    brand_id: str,
    body: BrandUpdate,
    principal: Annotated[CurrentPrincipal, Depends(get_current_principal)],
    db: Annotated[Session, Depends(get_db)],
) -> BrandOut:
    """Update a brand the caller administers or owns."""
    require_brand_access(principal, Action.UPDATE, brand_id)
    brand = db.get(Brand, brand_id)
    if brand is None:
        raise HTTPException(status_code=404, detail="Brand not found")
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        if field == "description" and value is None:
            value = ""
        setattr(brand, field, value)
    db.commit()
    db.refresh(brand)
    return BrandOut.model_validate(brand)


@router.delete("/{brand_id}", response_model=BrandDeleteResponse)
def delete_brand(
    brand_id: str,
    principal: Annotated[CurrentPrincipal, Depends(get_current_principal)],
    db: Annotated[Session, Depends(get_db)],
) -> BrandDeleteResponse:
    """Delete a brand and retract it from every profile that owns it."""
    require_brand_access(principal, Action.DELETE, brand_id)
    try:
        retracted = OwnershipRegistry(db).delete_brand(brand_id)
    except BrandNotFound as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    return BrandDeleteResponse(id=brand_id, owners_retracted=retracted)
