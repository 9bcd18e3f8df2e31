"""Authorization gate: role + brand ownership -> allow/deny. Pure, no I/O."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from omahub.services.roles import Role

ADMINISTRATOR_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


class Action(str, Enum):
    """Brand-scoped actions a caller can request."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_OWNER = "not_owner"
    INSUFFICIENT_ROLE = "insufficient_role"


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check. reason is set only for denials."""

    allowed: bool
    reason: DenyReason | None = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(allowed=False, reason=reason)


def is_administrator(role: Role | None) -> bool:
    """admin and super_admin are equivalent for every authorization decision."""
    return role in ADMINISTRATOR_ROLES


def authorize(
    role: Role | None,
    owned_brands: Iterable[str],
    action: Action,
    target_brand_id: str | None,
) -> Decision:
    """
    Decide whether a caller may perform action on target_brand_id.

    role is None when no profile could be resolved for the caller. First match wins:
    no role -> unauthenticated; admin/super_admin -> allow; brand_admin owning the
    target -> allow; brand_admin otherwise (including no target) -> not_owner;
    user -> insufficient_role.
    """
    if role is None:
        return Decision.deny(DenyReason.UNAUTHENTICATED)
    if is_administrator(role):
        return Decision.allow()
    if role is Role.BRAND_ADMIN:
        if target_brand_id is not None and target_brand_id in frozenset(owned_brands):
            return Decision.allow()
        return Decision.deny(DenyReason.NOT_OWNER)
    if role is Role.USER:
        return Decision.deny(DenyReason.INSUFFICIENT_ROLE)
    raise ValueError(f"Unhandled role: {role!r}")


def visible_brands(
    role: Role | None,
    owned_brands: Iterable[str],
    existing_brand_ids: Iterable[str],
) -> frozenset[str]:
    """
    Brand ids a caller may see in the studio.

    Administrators see every brand; brand admins see their owned brands that still
    exist; everyone else sees none (public browsing is a separate, ungated path).
    """
    existing = frozenset(existing_brand_ids)
    if is_administrator(role):
        return existing
    if role is Role.BRAND_ADMIN:
        return existing & frozenset(owned_brands)
    return frozenset()
