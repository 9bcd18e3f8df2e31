"""Session token verification and PKCE helpers.

Access tokens are issued and signed by the external identity backend; this
module only verifies them. Password hashing and token refresh stay with the
backend.
"""

import base64
import hashlib
import os
from typing import Any

import jwt

from omahub.core.config import settings

# Allow minimal clock skew between the identity backend and this service.
MAX_CLOCK_SKEW_SECONDS = 5


def decode_session_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an access token; return its claims (sub, email, exp, ...).
    Raises jwt.PyJWTError on invalid, expired or foreign-audience tokens.
    """
    secret = settings.IDENTITY_JWT_SECRET.get_secret_value()
    claims = jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.IDENTITY_JWT_AUDIENCE,
        leeway=MAX_CLOCK_SKEW_SECONDS,
        options={"require": ["sub", "exp"]},
    )
    return claims


def generate_code_verifier(length: int = 64) -> str:
    """Generate a high-entropy URL-safe PKCE code_verifier (43-128 chars)."""
    return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii").rstrip("=")


def code_challenge_s256(code_verifier: str) -> str:
    """Derive the S256 code challenge from a verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
