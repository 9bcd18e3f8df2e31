"""Tests for omahub.services.provisioning: first-sight creation, idempotence, concurrent sign-ins."""

import tempfile
import unittest
from unittest.mock import MagicMock

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from omahub.models import Base, Profile
from omahub.services.provisioning import Identity, ProfileProvisioner, ProvisionError


def _session_factory(testcase: unittest.TestCase) -> sessionmaker:
    """Fresh SQLite file database per test (a file, so several sessions share it)."""
    tmp = tempfile.TemporaryDirectory()
    testcase.addCleanup(tmp.cleanup)
    engine = create_engine(f"sqlite:///{tmp.name}/omahub.db")
    testcase.addCleanup(engine.dispose)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


IDENTITY = Identity(id="uid-1", email="ada@omahub.test", full_name="Ada Obi")


def _elevate(db) -> None:
    """An administrator elevates the freshly created profile."""
    profile = db.get(Profile, "uid-1")
    profile.role = "brand_admin"
    profile.owned_brands = ["brand-7"]
    db.commit()


class TestEnsure(unittest.TestCase):
    def setUp(self) -> None:
        self.factory = _session_factory(self)
        self.db = self.factory()
        self.addCleanup(self.db.close)

    def _count(self) -> int:
        return self.db.execute(select(func.count()).select_from(Profile)).scalar_one()

    def test_first_sight_creates_default_profile(self) -> None:
        with self.assertLogs("omahub.services.provisioning", level="INFO"):
            profile = ProfileProvisioner(self.db).ensure(IDENTITY)
        self.assertEqual(profile.id, "uid-1")
        self.assertEqual(profile.email, "ada@omahub.test")
        self.assertEqual(profile.full_name, "Ada Obi")
        self.assertEqual(profile.role, "user")
        self.assertEqual(profile.owned_brands, [])
        self.assertIsNotNone(profile.created_at)

    def test_repeated_ensure_keeps_one_row(self) -> None:
        provisioner = ProfileProvisioner(self.db)
        first = provisioner.ensure(IDENTITY)
        second = provisioner.ensure(IDENTITY)
        self.assertEqual(first.id, second.id)
        self.assertEqual(self._count(), 1)

    def test_existing_profile_is_never_modified(self) -> None:
        self.db.add(
            Profile(
                id="uid-1",
                email="old@omahub.test",
                role="brand_admin",
                owned_brands=["brand-7"],
            )
        )
        self.db.commit()
        profile = ProfileProvisioner(self.db).ensure(
            Identity(id="uid-1", email="ada@omahub.test", full_name="Someone Else")
        )
        self.assertEqual(profile.role, "brand_admin")
        self.assertEqual(profile.owned_brands, ["brand-7"])
        self.assertEqual(profile.email, "old@omahub.test")
        self.assertIsNone(profile.full_name)

    def test_concurrent_first_sign_in_returns_winner(self) -> None:
        # The winner commits between our lookup and our insert.
        winner_db = self.factory()
        self.addCleanup(winner_db.close)
        loser = ProfileProvisioner(self.db)
        real_find = loser._find
        lookups: list[str] = []

        def racing_find(identity_id: str) -> Profile | None:
            lookups.append(identity_id)
            if len(lookups) == 1:
                ProfileProvisioner(winner_db).ensure(IDENTITY)
                _elevate(winner_db)
                return None
            return real_find(identity_id)

        loser._find = racing_find  # type: ignore[method-assign]
        with self.assertLogs("omahub.services.provisioning", level="INFO") as logs:
            profile = loser.ensure(IDENTITY)

        self.assertEqual(len(lookups), 2)
        self.assertTrue(any("concurrently" in line for line in logs.output))
        self.assertEqual(self._count(), 1)
        # The winner's row, including changes made after its creation, is what we get back.
        self.assertEqual(profile.role, "brand_admin")
        self.assertEqual(profile.owned_brands, ["brand-7"])

    def test_store_unavailable_raises_provision_error(self) -> None:
        db = MagicMock()
        db.get.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        with self.assertLogs("omahub.services.provisioning", level="ERROR"):
            with self.assertRaises(ProvisionError) as ctx:
                ProfileProvisioner(db).ensure(IDENTITY)
        self.assertEqual(ctx.exception.identity_id, "uid-1")
        db.rollback.assert_called()

    def test_conflict_without_winner_raises_provision_error(self) -> None:
        db = MagicMock()
        db.get.return_value = None
        db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        with self.assertRaises(ProvisionError):
            ProfileProvisioner(db).ensure(IDENTITY)
        db.rollback.assert_called_once()


if __name__ == "__main__":
    unittest.main()
