"""
Set a profile's role and optionally grant brand ownership. Run from project root:
  python -m omahub.scripts.set_role EMAIL ROLE [--grant BRAND_ID ...]
Example:
  python -m omahub.scripts.set_role owner@example.com brand_admin --grant ehbs-couture

The profile must already exist (it is created on the user's first sign-in).
"""
import argparse
import logging
import sys

from sqlalchemy import func

from omahub.core.database import session_scope
from omahub.models import Profile
from omahub.services.ownership import OwnershipError, OwnershipRegistry
from omahub.services.roles import Role, normalize_email

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Change an OmaHub profile's role (no studio UI needed).")
    parser.add_argument("email", help="Email of an existing profile")
    parser.add_argument("role", choices=[r.value for r in Role])
    parser.add_argument(
        "--grant",
        action="append",
        default=[],
        metavar="BRAND_ID",
        help="Grant ownership of this brand (repeatable)",
    )
    args = parser.parse_args(argv)

    email = normalize_email(args.email)
    if not email:
        print("Email must not be empty.", file=sys.stderr)
        return 1

    with session_scope() as db:
        matches = db.query(Profile).filter(func.lower(Profile.email) == email).all()
        if not matches:
            print(f"No profile for '{email}'. The user must sign in once first.", file=sys.stderr)
            return 1
        if len(matches) > 1:
            print(f"Several profiles use '{email}'; update them in the studio instead.", file=sys.stderr)
            return 1
        profile_id = matches[0].id
        registry = OwnershipRegistry(db)
        registry.set_role(profile_id, Role(args.role))
        try:
            for brand_id in args.grant:
                registry.grant(profile_id, brand_id)
        except OwnershipError as e:
            print(e.message, file=sys.stderr)
            return 1
        owned = sorted(registry.owned_by(profile_id))

    print(f"Profile '{email}' now has role '{args.role}' and owns {owned or 'no brands'}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
