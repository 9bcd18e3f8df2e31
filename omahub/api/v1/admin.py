"""Administrative profile management: roles, brand ownership, deletion."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from omahub.api.v1.auth import require_administrator, require_brand_access
from omahub.core.database import get_db
from omahub.models import Profile
from omahub.schemas.auth import CurrentPrincipal
from omahub.schemas.profiles import OwnershipResponse, ProfileOut, ProfilesResponse, RoleUpdate
from omahub.services.authorization import Action
from omahub.services.ownership import BrandNotFound, OwnershipError, OwnershipRegistry, ProfileNotFound
from omahub.services.roles import parse_role

router = APIRouter()


def _profile_out(profile: Profile) -> ProfileOut:
    return ProfileOut(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name,
        role=parse_role(profile.role),
        owned_brands=list(profile.owned_brands or []),
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


def _not_found(e: OwnershipError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.get("", response_model=ProfilesResponse)
def list_profiles(
    _admin: Annotated[CurrentPrincipal, Depends(require_administrator)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfilesResponse:
    """List all profiles (administrators only)."""
    profiles = db.query(Profile).order_by(Profile.created_at, Profile.id).all()
    return ProfilesResponse(profiles=[_profile_out(p) for p in profiles])


@router.patch("/{profile_id}/role", response_model=ProfileOut)
def update_role(
    profile_id: str,
    body: RoleUpdate,
    _admin: Annotated[CurrentPrincipal, Depends(require_administrator)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileOut:
    try:
        profile = OwnershipRegistry(db).set_role(profile_id, body.role)
    except ProfileNotFound as e:
        raise _not_found(e) from e
    return _profile_out(profile)


@router.put("/{profile_id}/brands/{brand_id}", response_model=OwnershipResponse)
def grant_brand(
    profile_id: str,
    brand_id: str,
    admin: Annotated[CurrentPrincipal, Depends(require_administrator)],
    db: Annotated[Session, Depends(get_db)],
) -> OwnershipResponse:
    """Grant a profile ownership of an existing brand. Idempotent."""
    require_brand_access(admin, Action.MANAGE, brand_id)
    try:
        owned = OwnershipRegistry(db).grant(profile_id, brand_id)
    except (BrandNotFound, ProfileNotFound) as e:
        raise _not_found(e) from e
    return OwnershipResponse(profile_id=profile_id, owned_brands=sorted(owned))


@router.delete("/{profile_id}/brands/{brand_id}", response_model=OwnershipResponse)
def revoke_brand(
    profile_id: str,
    brand_id: str,
    admin: Annotated[CurrentPrincipal, Depends(require_administrator)],
    db: Annotated[Session, Depends(get_db)],
) -> OwnershipResponse:
    """Revoke brand ownership. Revoking a brand the profile does not own is a no-op."""
    require_brand_access(admin, Action.MANAGE, brand_id)
    try:
        owned = OwnershipRegistry(db).revoke(profile_id, brand_id)
    except ProfileNotFound as e:
        raise _not_found(e) from e
    return OwnershipResponse(profile_id=profile_id, owned_brands=sorted(owned))


@router.delete("/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_profile(
    profile_id: str,
    admin: Annotated[CurrentPrincipal, Depends(require_administrator)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Hard-delete a profile; brands it created keep existing without a creator."""
    if profile_id == admin.identity_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own profile")
    try:
        OwnershipRegistry(db).delete_profile(profile_id)
    except ProfileNotFound as e:
        raise _not_found(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
