"""Idempotent, race-tolerant profile provisioning for authenticated identities."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from omahub.models import Profile
from omahub.services.roles import DEFAULT_ROLE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Stable identity issued by the identity backend after a successful exchange."""

    id: str
    email: str
    full_name: str | None = None
    avatar_url: str | None = None


class ProvisionError(Exception):
    """Raised when a profile cannot be read or created for an identity."""

    def __init__(self, message: str, identity_id: str | None = None) -> None:
        self.message = message
        self.identity_id = identity_id
        super().__init__(message)


class ProvisionConflict(Exception):
    """Another request created the profile first. Never escapes ensure()."""


class ProfileProvisioner:
    """Guarantees exactly one Profile row per identity id."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def _find(self, identity_id: str) -> Profile | None:
        return self._db.get(Profile, identity_id, populate_existing=True)

    def _insert(self, identity: Identity) -> Profile:
        profile = Profile(
            id=identity.id,
            email=identity.email,
            full_name=identity.full_name,
            avatar_url=identity.avatar_url,
            role=DEFAULT_ROLE.value,
            owned_brands=[],
        )
        self._db.add(profile)
        try:
            self._db.commit()
        except IntegrityError as e:
            self._db.rollback()
            raise ProvisionConflict(identity.id) from e
        self._db.refresh(profile)
        return profile

    def ensure(self, identity: Identity) -> Profile:
        """
        Return the profile for identity, creating a default one on first sight.

        Existing profiles are returned unchanged (role and ownership are never
        touched). If a concurrent request wins the insert, the unique key on id
        rejects ours and the winning row is re-read and returned.
        """
        try:
            existing = self._find(identity.id)
            if existing is not None:
                return existing
            try:
                profile = self._insert(identity)
            except ProvisionConflict:
                logger.info(
                    "Profile created concurrently; re-reading winner",
                    extra={"identity_id": identity.id},
                )
                winner = self._find(identity.id)
                if winner is None:
                    raise ProvisionError(
                        "Profile insert conflicted but no profile exists", identity.id
                    )
                return winner
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(
                "Profile provisioning failed",
                extra={"identity_id": identity.id, "error_type": type(e).__name__},
            )
            raise ProvisionError("Profile store unavailable", identity.id) from e

        logger.info("Provisioned new profile", extra={"identity_id": identity.id})
        return profile
