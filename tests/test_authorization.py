"""Unit tests for omahub.services.authorization: the brand access decision table."""

import unittest

from omahub.services.authorization import (
    Action,
    Decision,
    DenyReason,
    authorize,
    is_administrator,
    visible_brands,
)
from omahub.services.roles import Role

ALL_ACTIONS = list(Action)


class TestAuthorizeAdministrators(unittest.TestCase):
    """admin and super_admin may do anything, with or without ownership."""

    def test_admins_allowed_everywhere(self) -> None:
        for role in (Role.ADMIN, Role.SUPER_ADMIN):
            for action in ALL_ACTIONS:
                for target in (None, "brand-1", "unknown-brand"):
                    with self.subTest(role=role, action=action, target=target):
                        self.assertEqual(authorize(role, [], action, target), Decision.allow())

    def test_admin_and_super_admin_are_equivalent(self) -> None:
        for action in ALL_ACTIONS:
            self.assertEqual(
                authorize(Role.ADMIN, [], action, "brand-1"),
                authorize(Role.SUPER_ADMIN, [], action, "brand-1"),
            )
        self.assertTrue(is_administrator(Role.ADMIN))
        self.assertTrue(is_administrator(Role.SUPER_ADMIN))
        self.assertFalse(is_administrator(Role.BRAND_ADMIN))
        self.assertFalse(is_administrator(None))


class TestAuthorizeBrandAdmin(unittest.TestCase):
    """brand_admin is allowed only on brands it owns."""

    def test_owned_brand_allowed(self) -> None:
        for action in ALL_ACTIONS:
            with self.subTest(action=action):
                decision = authorize(Role.BRAND_ADMIN, ["brand-7"], action, "brand-7")
                self.assertTrue(decision.allowed)
                self.assertIsNone(decision.reason)

    def test_unowned_brand_denied_not_owner(self) -> None:
        decision = authorize(Role.BRAND_ADMIN, ["brand-7"], Action.UPDATE, "brand-9")
        self.assertFalse(decision.allowed)
        self.assertIs(decision.reason, DenyReason.NOT_OWNER)

    def test_no_target_denied_not_owner(self) -> None:
        decision = authorize(Role.BRAND_ADMIN, ["brand-7"], Action.CREATE, None)
        self.assertEqual(decision, Decision.deny(DenyReason.NOT_OWNER))

    def test_empty_ownership_denied(self) -> None:
        decision = authorize(Role.BRAND_ADMIN, frozenset(), Action.READ, "brand-7")
        self.assertIs(decision.reason, DenyReason.NOT_OWNER)

    def test_ownership_is_only_consulted_for_brand_admin(self) -> None:
        # A user with a stray owned_brands entry still cannot touch the brand.
        decision = authorize(Role.USER, ["brand-7"], Action.UPDATE, "brand-7")
        self.assertIs(decision.reason, DenyReason.INSUFFICIENT_ROLE)


class TestAuthorizeUserAndAnonymous(unittest.TestCase):
    def test_user_denied_insufficient_role(self) -> None:
        for action in ALL_ACTIONS:
            with self.subTest(action=action):
                decision = authorize(Role.USER, [], action, "brand-1")
                self.assertIs(decision.reason, DenyReason.INSUFFICIENT_ROLE)

    def test_no_role_denied_unauthenticated(self) -> None:
        decision = authorize(None, ["brand-1"], Action.READ, "brand-1")
        self.assertEqual(decision, Decision.deny(DenyReason.UNAUTHENTICATED))


class TestVisibleBrands(unittest.TestCase):
    """visible_brands narrows the studio listing by role and ownership."""

    existing = ["brand-1", "brand-2", "brand-3"]

    def test_admin_sees_all(self) -> None:
        self.assertEqual(visible_brands(Role.SUPER_ADMIN, [], self.existing), frozenset(self.existing))

    def test_brand_admin_sees_owned_existing_only(self) -> None:
        out = visible_brands(Role.BRAND_ADMIN, ["brand-2", "deleted-brand"], self.existing)
        self.assertEqual(out, frozenset({"brand-2"}))

    def test_user_and_anonymous_see_nothing(self) -> None:
        self.assertEqual(visible_brands(Role.USER, ["brand-1"], self.existing), frozenset())
        self.assertEqual(visible_brands(None, [], self.existing), frozenset())


if __name__ == "__main__":
    unittest.main()
