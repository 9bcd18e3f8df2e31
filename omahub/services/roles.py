"""Role model and role resolution with the legacy email allowlist fallback."""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from omahub.core.config import Settings

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Closed set of authorization roles stored on a profile."""

    USER = "user"
    BRAND_ADMIN = "brand_admin"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


DEFAULT_ROLE = Role.USER


def parse_role(value: str | None) -> Role:
    """Map a stored role string to Role; unknown or empty values become the default role."""
    if value is None:
        return DEFAULT_ROLE
    try:
        return Role(value.strip().lower())
    except ValueError:
        logger.warning("Unknown stored role %r; treating as %s", value, DEFAULT_ROLE.value)
        return DEFAULT_ROLE


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _parse_email_list(raw: str | None) -> frozenset[str]:
    """Parse a comma-separated email list; blanks are ignored."""
    if not raw:
        return frozenset()
    return frozenset(e for e in (normalize_email(part) for part in raw.split(",")) if e)


@dataclass(frozen=True)
class LegacyRoleAllowlist:
    """
    Static email -> role mapping kept for identities onboarded before profile
    roles were authoritative. Read-only; slated for removal once every listed
    identity has an elevated profile role.
    """

    super_admin_emails: frozenset[str] = frozenset()
    brand_admin_emails: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "LegacyRoleAllowlist":
        return cls(
            super_admin_emails=_parse_email_list(settings.LEGACY_SUPER_ADMIN_EMAILS),
            brand_admin_emails=_parse_email_list(settings.LEGACY_BRAND_ADMIN_EMAILS),
        )

    def lookup(self, email: str | None) -> Role | None:
        """Return the allowlisted role for email, or None. Super admin wins over brand admin."""
        key = normalize_email(email)
        if not key:
            return None
        if key in self.super_admin_emails:
            return Role.SUPER_ADMIN
        if key in self.brand_admin_emails:
            return Role.BRAND_ADMIN
        return None

    def __bool__(self) -> bool:
        return bool(self.super_admin_emails or self.brand_admin_emails)


@lru_cache
def get_legacy_allowlist() -> LegacyRoleAllowlist:
    """Process-wide allowlist, built once from settings."""
    from omahub.core.config import get_settings

    return LegacyRoleAllowlist.from_settings(get_settings())


def resolve_role(
    email: str | None,
    profile_role: Role | None,
    allowlist: LegacyRoleAllowlist,
) -> Role:
    """
    Resolve the effective role for an identity.

    profile_role is the role read from the profile row, or None when the row
    could not be read. Resolution order:
      1. profile read, non-default role -> that role
      2./3. profile read with the default role and email allowlisted -> allowlisted role
      4. profile unreadable -> allowlisted role if any
      5. otherwise -> user

    The allowlist never overrides an explicitly elevated role. Pure apart from
    logging the degraded path.
    """
    if profile_role is not None and profile_role is not DEFAULT_ROLE:
        return profile_role

    legacy_role = allowlist.lookup(email)
    if legacy_role is None:
        return DEFAULT_ROLE

    logger.warning(
        "Degraded role resolution: legacy allowlist applied",
        extra={
            "legacy_role": legacy_role.value,
            "profile_state": "unavailable" if profile_role is None else "default_role",
        },
    )
    return legacy_role
