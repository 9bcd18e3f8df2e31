"""Tests for omahub.services.ownership: grant/revoke, brand deletion cascade, admin profile changes."""

import tempfile
import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from omahub.models import Base, Brand, Profile
from omahub.services.ownership import BrandNotFound, OwnershipRegistry, ProfileNotFound
from omahub.services.roles import Role


def _session_factory(testcase: unittest.TestCase) -> sessionmaker:
    tmp = tempfile.TemporaryDirectory()
    testcase.addCleanup(tmp.cleanup)
    engine = create_engine(f"sqlite:///{tmp.name}/omahub.db")
    testcase.addCleanup(engine.dispose)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class OwnershipTestCase(unittest.TestCase):
    """Seeds three profiles and three brands."""

    def setUp(self) -> None:
        self.factory = _session_factory(self)
        self.db = self.factory()
        self.addCleanup(self.db.close)
        self.db.add_all(
            [
                Profile(id="p1", email="p1@omahub.test", role="brand_admin", owned_brands=["brand-7"]),
                Profile(id="p2", email="p2@omahub.test", role="brand_admin", owned_brands=["brand-3", "brand-7"]),
                Profile(id="p3", email="p3@omahub.test", role="brand_admin", owned_brands=["brand-3"]),
                Brand(id="brand-3", name="Brand Three"),
                Brand(id="brand-7", name="Brand Seven", created_by="p1"),
                Brand(id="brand-9", name="Brand Nine"),
            ]
        )
        self.db.commit()
        self.registry = OwnershipRegistry(self.db)

    def _owned(self, profile_id: str) -> list[str]:
        with self.factory() as fresh:
            return list(fresh.get(Profile, profile_id).owned_brands)


class TestGrantAndRevoke(OwnershipTestCase):
    def test_grant_adds_brand(self) -> None:
        owned = self.registry.grant("p3", "brand-9")
        self.assertEqual(owned, frozenset({"brand-3", "brand-9"}))
        self.assertEqual(self._owned("p3"), ["brand-3", "brand-9"])

    def test_grant_is_idempotent(self) -> None:
        self.registry.grant("p1", "brand-7")
        self.registry.grant("p1", "brand-7")
        self.assertEqual(self._owned("p1"), ["brand-7"])

    def test_grant_unknown_brand(self) -> None:
        with self.assertRaises(BrandNotFound) as ctx:
            self.registry.grant("p1", "no-such-brand")
        self.assertEqual(ctx.exception.brand_id, "no-such-brand")
        self.assertEqual(self._owned("p1"), ["brand-7"])

    def test_grant_unknown_profile(self) -> None:
        with self.assertRaises(ProfileNotFound):
            self.registry.grant("ghost", "brand-7")

    def test_revoke_removes_brand(self) -> None:
        owned = self.registry.revoke("p2", "brand-3")
        self.assertEqual(owned, frozenset({"brand-7"}))
        self.assertEqual(self._owned("p2"), ["brand-7"])

    def test_revoke_unowned_brand_is_noop(self) -> None:
        owned = self.registry.revoke("p1", "brand-9")
        self.assertEqual(owned, frozenset({"brand-7"}))

    def test_owned_by_snapshot(self) -> None:
        self.assertEqual(self.registry.owned_by("p2"), frozenset({"brand-3", "brand-7"}))
        self.assertEqual(self.registry.owned_by("ghost"), frozenset())

    def test_grant_from_stale_session_keeps_concurrent_grant(self) -> None:
        stale_db = self.factory()
        self.addCleanup(stale_db.close)
        stale_db.get(Profile, "p3")
        stale_db.commit()

        self.registry.grant("p3", "brand-7")
        OwnershipRegistry(stale_db).grant("p3", "brand-9")

        self.assertEqual(sorted(self._owned("p3")), ["brand-3", "brand-7", "brand-9"])

    def test_grant_racing_brand_deletion_never_references_deleted_brand(self) -> None:
        # The brand is deleted by another request after grant() starts but before it locks the profile.
        other_db = self.factory()
        self.addCleanup(other_db.close)
        real_lock_profile = self.registry._lock_profile

        def lock_after_delete(profile_id: str) -> Profile:
            OwnershipRegistry(other_db).delete_brand("brand-3")
            return real_lock_profile(profile_id)

        self.registry._lock_profile = lock_after_delete  # type: ignore[method-assign]
        with self.assertRaises(BrandNotFound):
            self.registry.grant("p1", "brand-3")

        self.assertNotIn("brand-3", self._owned("p1"))
        self.assertEqual(self._owned("p1"), ["brand-7"])
        with self.factory() as fresh:
            self.assertIsNone(fresh.get(Brand, "brand-3"))


class TestDeleteBrand(OwnershipTestCase):
    def test_deleting_brand_retracts_every_owner(self) -> None:
        retracted = self.registry.delete_brand("brand-7")

        self.assertEqual(retracted, 2)
        self.assertEqual(self._owned("p1"), [])
        self.assertEqual(self._owned("p2"), ["brand-3"])
        self.assertEqual(self._owned("p3"), ["brand-3"])
        with self.factory() as fresh:
            self.assertIsNone(fresh.get(Brand, "brand-7"))

    def test_deleting_unowned_brand(self) -> None:
        self.assertEqual(self.registry.delete_brand("brand-9"), 0)

    def test_deleting_unknown_brand(self) -> None:
        with self.assertRaises(BrandNotFound):
            self.registry.delete_brand("no-such-brand")


class TestProfileAdministration(OwnershipTestCase):
    def test_set_role(self) -> None:
        profile = self.registry.set_role("p3", Role.ADMIN)
        self.assertEqual(profile.role, "admin")
        with self.factory() as fresh:
            self.assertEqual(fresh.get(Profile, "p3").role, "admin")

    def test_set_role_unknown_profile(self) -> None:
        with self.assertRaises(ProfileNotFound):
            self.registry.set_role("ghost", Role.ADMIN)

    def test_promote_default_role_only_from_user(self) -> None:
        self.db.add(Profile(id="p4", email="p4@omahub.test", role="user", owned_brands=[]))
        self.db.commit()
        self.assertTrue(self.registry.promote_default_role("p4", Role.SUPER_ADMIN))
        self.assertFalse(self.registry.promote_default_role("p1", Role.SUPER_ADMIN))
        with self.factory() as fresh:
            self.assertEqual(fresh.get(Profile, "p4").role, "super_admin")
            self.assertEqual(fresh.get(Profile, "p1").role, "brand_admin")

    def test_delete_profile_keeps_created_brands(self) -> None:
        self.registry.delete_profile("p1")
        with self.factory() as fresh:
            self.assertIsNone(fresh.get(Profile, "p1"))
            brand = fresh.get(Brand, "brand-7")
            self.assertIsNotNone(brand)
            self.assertIsNone(brand.created_by)

    def test_delete_unknown_profile(self) -> None:
        with self.assertRaises(ProfileNotFound):
            self.registry.delete_profile("ghost")


if __name__ == "__main__":
    unittest.main()
