"""Credential exchange against the external identity backend (GoTrue-compatible REST API).

Turns a password pair or an OAuth authorization code into a session bound to a
stable identity, then provisions the identity's profile before returning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from omahub.core.redirects import safe_redirect_path
from omahub.core.security import code_challenge_s256, generate_code_verifier
from omahub.services.provisioning import Identity, ProfileProvisioner

if TYPE_CHECKING:
    from omahub.core.config import Settings
    from omahub.models import Profile

logger = logging.getLogger(__name__)

SUPPORTED_OAUTH_PROVIDERS = frozenset({"google", "apple", "facebook"})

# Backend error codes that mean "wrong email or password".
INVALID_CREDENTIAL_CODES = frozenset({"invalid_grant", "invalid_credentials"})

DEFAULT_SESSION_TTL_SEC = 3600


class AuthError(Exception):
    """Base class for credential exchange failures. code is safe to put in a URL."""

    code = "auth_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidCredentials(AuthError):
    """Password pair rejected. Deliberately does not say whether the email exists."""

    code = "invalid_credentials"

    def __init__(self) -> None:
        super().__init__("Invalid email or password.")


class ProviderError(AuthError):
    """The identity backend or OAuth provider reported an error; description kept verbatim."""

    def __init__(
        self,
        description: str,
        code: str = "provider_error",
        transient: bool = False,
    ) -> None:
        self.description = description
        self.code = code
        self.transient = transient
        super().__init__(description)


class NoSessionIssued(AuthError):
    """Code exchange succeeded at the HTTP level but no session came back."""

    code = "no_session"

    def __init__(self) -> None:
        super().__init__("Authentication failed - no session created")


@dataclass(frozen=True)
class PasswordPair:
    email: str
    password: str


@dataclass(frozen=True)
class AuthorizationCode:
    """Parameters received on the OAuth callback."""

    code: str | None
    code_verifier: str | None = None
    error: str | None = None
    error_description: str | None = None


@dataclass(frozen=True)
class AuthSession:
    """Session issued by the identity backend, bound to one identity."""

    access_token: str
    refresh_token: str | None
    identity: Identity
    issued_at: datetime
    expires_at: datetime

    @property
    def max_age_seconds(self) -> int:
        return max(0, int((self.expires_at - self.issued_at).total_seconds()))


@dataclass(frozen=True)
class ExchangeResult:
    session: AuthSession
    profile: Profile
    redirect_to: str


def _error_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_code(body: dict[str, Any]) -> str | None:
    for key in ("error_code", "error"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _error_description(resp: httpx.Response, body: dict[str, Any]) -> str:
    for key in ("error_description", "msg", "message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return (resp.text or f"Identity provider returned {resp.status_code}")[:500]


def _identity_from_user(user: dict[str, Any]) -> Identity | None:
    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        return None
    metadata = user.get("user_metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    return Identity(
        id=user_id,
        email=user.get("email") or "",
        full_name=metadata.get("full_name") or metadata.get("name"),
        avatar_url=metadata.get("avatar_url") or metadata.get("picture"),
    )


def _session_from_payload(payload: dict[str, Any]) -> AuthSession | None:
    """Build a session from a token response; None if the payload carries no session."""
    access_token = payload.get("access_token")
    user = payload.get("user")
    if not isinstance(access_token, str) or not access_token or not isinstance(user, dict):
        return None
    identity = _identity_from_user(user)
    if identity is None:
        return None
    issued_at = datetime.now(UTC)
    expires_at_raw = payload.get("expires_at")
    if isinstance(expires_at_raw, (int, float)):
        expires_at = datetime.fromtimestamp(expires_at_raw, UTC)
    else:
        expires_in = payload.get("expires_in")
        ttl = expires_in if isinstance(expires_in, int) and expires_in > 0 else DEFAULT_SESSION_TTL_SEC
        expires_at = issued_at + timedelta(seconds=ttl)
    return AuthSession(
        access_token=access_token,
        refresh_token=payload.get("refresh_token"),
        identity=identity,
        issued_at=issued_at,
        expires_at=expires_at,
    )


class CredentialExchanger:
    """
    Exchanges credentials with the identity backend and provisions the profile.

    client is optional; when omitted a short-lived httpx.AsyncClient is opened
    per request.
    """

    def __init__(
        self,
        settings: Settings,
        provisioner: ProfileProvisioner,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._provisioner = provisioner
        self._client = client

    async def _post(
        self,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> httpx.Response:
        url = f"{self._settings.IDENTITY_BASE_URL}{path}"
        headers = {"apikey": self._settings.IDENTITY_ANON_KEY.get_secret_value()}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        timeout = self._settings.IDENTITY_REQUEST_TIMEOUT_SEC
        try:
            if self._client is not None:
                return await self._client.post(
                    url, params=params, json=json, headers=headers, timeout=timeout
                )
            async with httpx.AsyncClient(timeout=timeout) as client:
                return await client.post(url, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("Identity provider timed out", extra={"path": path})
            raise ProviderError(
                "Identity provider timed out. Please try again.",
                code="provider_timeout",
                transient=True,
            ) from e
        except httpx.HTTPError as e:
            logger.error("Identity provider unreachable", extra={"path": path})
            raise ProviderError(
                "Identity provider unreachable. Please try again.",
                code="provider_unreachable",
                transient=True,
            ) from e

    async def _exchange_password(self, pair: PasswordPair) -> AuthSession:
        resp = await self._post(
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": pair.email, "password": pair.password},
        )
        if resp.status_code >= 400:
            body = _error_body(resp)
            code = _error_code(body)
            description = _error_description(resp, body)
            if resp.status_code in (400, 401) and (
                code in INVALID_CREDENTIAL_CODES
                or "invalid login credentials" in description.lower()
            ):
                raise InvalidCredentials()
            logger.error(
                "Password sign-in rejected by identity provider",
                extra={"status_code": resp.status_code, "provider_code": code},
            )
            raise ProviderError(
                description,
                code=code or "provider_error",
                transient=resp.status_code >= 500,
            )
        session = _session_from_payload(_error_body(resp))
        if session is None:
            raise NoSessionIssued()
        return session

    async def _exchange_code(self, grant: AuthorizationCode) -> AuthSession:
        if grant.error:
            description = grant.error_description or grant.error
            logger.error(
                "OAuth provider returned an error",
                extra={"provider_code": grant.error, "description": description[:200]},
            )
            raise ProviderError(description, code=grant.error)
        if not grant.code:
            raise ProviderError("Invalid authentication code", code="invalid_request")
        if not grant.code_verifier:
            # The verifier cookie expired or the flow started in another browser.
            raise ProviderError(
                "Authentication failed - please try again", code="missing_code_verifier"
            )

        resp = await self._post(
            "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": grant.code, "code_verifier": grant.code_verifier},
        )
        if resp.status_code >= 400:
            body = _error_body(resp)
            code = _error_code(body)
            description = _error_description(resp, body)
            logger.error(
                "Authorization code exchange failed",
                extra={"status_code": resp.status_code, "provider_code": code},
            )
            raise ProviderError(
                description,
                code=code or "provider_error",
                transient=resp.status_code >= 500,
            )
        session = _session_from_payload(_error_body(resp))
        if session is None:
            logger.error("Authorization code exchange returned no session")
            raise NoSessionIssued()
        return session

    async def exchange(
        self,
        credentials: PasswordPair | AuthorizationCode,
        state: str | None = None,
    ) -> ExchangeResult:
        """
        Exchange credentials for a session and provision the profile.

        state is the intended post-login destination; it is only honoured when it
        is a same-origin relative path, otherwise DEFAULT_REDIRECT_PATH is used.
        Raises AuthError subclasses on failure and ProvisionError if the profile
        store is unavailable. Nothing is provisioned unless the exchange succeeded.
        """
        if isinstance(credentials, PasswordPair):
            session = await self._exchange_password(credentials)
        elif isinstance(credentials, AuthorizationCode):
            session = await self._exchange_code(credentials)
        else:
            raise TypeError(f"Unsupported credentials: {type(credentials).__name__}")

        profile = self._provisioner.ensure(session.identity)

        default = self._settings.DEFAULT_REDIRECT_PATH
        redirect_to = safe_redirect_path(state, default)
        if state and redirect_to != state:
            logger.warning("Discarded unsafe post-login redirect target")
        logger.info(
            "Credential exchange succeeded",
            extra={
                "identity_id": session.identity.id,
                "method": "password" if isinstance(credentials, PasswordPair) else "oauth",
            },
        )
        return ExchangeResult(session=session, profile=profile, redirect_to=redirect_to)

    def authorization_url(self, provider: str, next_path: str | None = None) -> tuple[str, str]:
        """
        Build the backend authorize URL for an OAuth provider.

        Returns (url, code_verifier); the caller keeps the verifier server-side or in
        an HttpOnly cookie until the callback. next_path travels as the callback's
        state and is re-validated there.
        """
        if provider not in SUPPORTED_OAUTH_PROVIDERS:
            raise ValueError(f"Unsupported OAuth provider: {provider}")
        code_verifier = generate_code_verifier()
        state = safe_redirect_path(next_path, self._settings.DEFAULT_REDIRECT_PATH)
        callback = (
            f"{self._settings.SITE_URL}{self._settings.API_V1_PREFIX}/auth/callback?"
            f"{urlencode({'state': state})}"
        )
        params = {
            "provider": provider,
            "redirect_to": callback,
            "code_challenge": code_challenge_s256(code_verifier),
            "code_challenge_method": "s256",
        }
        url = f"{self._settings.IDENTITY_BASE_URL}/auth/v1/authorize?{urlencode(params)}"
        return url, code_verifier

    async def sign_up(self, pair: PasswordPair) -> AuthSession | None:
        """
        Register a new identity. Provisions the profile when the backend returns a
        user. Returns the session, or None when email confirmation is pending.
        """
        resp = await self._post(
            "/auth/v1/signup",
            json={"email": pair.email, "password": pair.password},
        )
        body = _error_body(resp)
        if resp.status_code >= 400:
            code = _error_code(body)
            raise ProviderError(
                _error_description(resp, body),
                code=code or "signup_failed",
                transient=resp.status_code >= 500,
            )
        session = _session_from_payload(body)
        if session is not None:
            self._provisioner.ensure(session.identity)
            return session
        user = body.get("user") if isinstance(body.get("user"), dict) else body
        identity = _identity_from_user(user)
        if identity is None:
            raise NoSessionIssued()
        self._provisioner.ensure(identity)
        logger.info("Sign-up pending email confirmation", extra={"identity_id": identity.id})
        return None

    async def sign_out(self, access_token: str) -> bool:
        """Ask the backend to revoke the session. Returns False if it could not be revoked."""
        try:
            resp = await self._post("/auth/v1/logout", access_token=access_token)
        except ProviderError as e:
            logger.warning("Sign-out not confirmed by identity provider", extra={"reason": e.code})
            return False
        if resp.status_code >= 400 and resp.status_code != 401:
            logger.warning(
                "Sign-out not confirmed by identity provider",
                extra={"status_code": resp.status_code},
            )
            return False
        return True
