"""Brand ownership registry and the profile/brand mutations that must keep it consistent.

All mutations are read-modify-write against the current row (row lock, identity
map refreshed) so a concurrent grant is never clobbered by a stale array.
"""

import logging

from sqlalchemy import cast, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from omahub.models import Brand, Profile
from omahub.services.roles import Role

logger = logging.getLogger(__name__)


class OwnershipError(Exception):
    """Base error for ownership and administrative profile operations."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BrandNotFound(OwnershipError):
    def __init__(self, brand_id: str) -> None:
        self.brand_id = brand_id
        super().__init__(f"Brand '{brand_id}' not found.")


class ProfileNotFound(OwnershipError):
    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__(f"Profile '{profile_id}' not found.")


class OwnershipRegistry:
    """Maintains Profile.owned_brands and administrative profile changes. Each public mutation commits."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def _lock_profile(self, profile_id: str) -> Profile:
        profile = self._db.execute(
            select(Profile)
            .where(Profile.id == profile_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if profile is None:
            raise ProfileNotFound(profile_id)
        return profile

    def _lock_brand(self, brand_id: str) -> Brand:
        brand = self._db.execute(
            select(Brand)
            .where(Brand.id == brand_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if brand is None:
            raise BrandNotFound(brand_id)
        return brand

    def _owning_profiles(self, brand_id: str) -> list[Profile]:
        stmt = select(Profile).with_for_update().execution_options(populate_existing=True)
        if self._db.get_bind().dialect.name == "postgresql":
            stmt = stmt.where(cast(Profile.owned_brands, JSONB).contains([brand_id]))
        return [p for p in self._db.execute(stmt).scalars() if brand_id in (p.owned_brands or [])]

    def owned_by(self, profile_id: str) -> frozenset[str]:
        """Snapshot of the brands profile_id owns. Re-query before any security decision."""
        owned = self._db.execute(
            select(Profile.owned_brands).where(Profile.id == profile_id)
        ).scalar_one_or_none()
        return frozenset(owned or ())

    def grant(self, profile_id: str, brand_id: str) -> frozenset[str]:
        """
        Grant ownership of an existing brand. Granting twice is a no-op.

        The brand row is locked in the same transaction as the profile, so a
        concurrent delete_brand either finishes first (BrandNotFound) or sees
        this grant and retracts it.
        """
        profile = self._lock_profile(profile_id)
        try:
            self._lock_brand(brand_id)
        except BrandNotFound:
            self._db.rollback()
            raise
        current = list(profile.owned_brands or [])
        if brand_id not in current:
            profile.owned_brands = current + [brand_id]
            logger.info(
                "Brand ownership granted",
                extra={"profile_id": profile_id, "brand_id": brand_id},
            )
        self._db.commit()
        return frozenset(profile.owned_brands)

    def _retract(self, profile: Profile, brand_id: str) -> None:
        current = list(profile.owned_brands or [])
        if brand_id in current:
            profile.owned_brands = [b for b in current if b != brand_id]
            logger.info(
                "Brand ownership revoked",
                extra={"profile_id": profile.id, "brand_id": brand_id},
            )

    def revoke(self, profile_id: str, brand_id: str) -> frozenset[str]:
        """Remove brand_id from the profile's ownership. Revoking a non-owned brand is a no-op."""
        profile = self._lock_profile(profile_id)
        self._retract(profile, brand_id)
        self._db.commit()
        return frozenset(profile.owned_brands)

    def delete_brand(self, brand_id: str) -> int:
        """
        Delete a brand and retract it from every owning profile in one transaction.

        Returns the number of profiles whose ownership was retracted.
        """
        try:
            brand = self._lock_brand(brand_id)
            owners = self._owning_profiles(brand_id)
            for profile in owners:
                self._retract(profile, brand_id)
            self._db.delete(brand)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        logger.info(
            "Brand deleted",
            extra={"brand_id": brand_id, "owners_retracted": len(owners)},
        )
        return len(owners)

    def set_role(self, profile_id: str, role: Role) -> Profile:
        """Administrative role change on the current row."""
        profile = self._lock_profile(profile_id)
        profile.role = role.value
        self._db.commit()
        logger.info("Profile role changed", extra={"profile_id": profile_id, "role": role.value})
        return profile

    def promote_default_role(self, profile_id: str, role: Role) -> bool:
        """Persist a legacy allowlist promotion if the row still holds the default role."""
        profile = self._lock_profile(profile_id)
        if profile.role != Role.USER.value:
            self._db.rollback()
            return False
        profile.role = role.value
        self._db.commit()
        logger.info(
            "Legacy role promotion persisted",
            extra={"profile_id": profile_id, "role": role.value},
        )
        return True

    def delete_profile(self, profile_id: str) -> None:
        """Administrative hard delete; brands created by the profile lose the reference."""
        profile = self._lock_profile(profile_id)
        try:
            self._db.execute(
                update(Brand)
                .where(Brand.created_by == profile_id)
                .values(created_by=None)
                .execution_options(synchronize_session="fetch")
            )
            self._db.delete(profile)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        logger.info("Profile deleted", extra={"profile_id": profile_id})
