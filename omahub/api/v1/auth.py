"""Sign-in, OAuth callback and sign-out routes, plus the per-request auth dependencies
(get_current_principal, require_brand_access, require_administrator)."""

import logging
from typing import Annotated
from urllib.parse import urlencode

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from omahub.core.config import Settings, get_settings
from omahub.core.database import get_db
from omahub.core.security import decode_session_token
from omahub.models import Profile
from omahub.schemas.auth import (
    CurrentPrincipal,
    LoginRequest,
    SessionResponse,
    SignupRequest,
    SignupResponse,
)
from omahub.services.authorization import Action, DenyReason, authorize, is_administrator
from omahub.services.credentials import (
    AuthError,
    AuthorizationCode,
    AuthSession,
    CredentialExchanger,
    InvalidCredentials,
    NoSessionIssued,
    PasswordPair,
    ProviderError,
)
from omahub.services.ownership import OwnershipRegistry
from omahub.services.provisioning import ProfileProvisioner, ProvisionError
from omahub.services.roles import get_legacy_allowlist, parse_role, resolve_role

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

NOT_AUTHENTICATED_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_exchanger(db: Annotated[Session, Depends(get_db)]) -> CredentialExchanger:
    """Dependency: credential exchanger bound to this request's database session."""
    return CredentialExchanger(get_settings(), ProfileProvisioner(db))


def _session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
    settings: Settings,
) -> str | None:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    if credentials is not None:
        return credentials.credentials
    return None


def _set_session_cookie(response: Response, session: AuthSession, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.access_token,
        max_age=session.max_age_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def _login_redirect(settings: Settings, code: str, message: str) -> str:
    return f"{settings.LOGIN_PATH}?{urlencode({'error': code, 'message': message})}"


def get_current_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentPrincipal:
    """
    Dependency: resolve the caller's identity, role and current ownership once per request.

    Raises 401 when the session cookie (or Bearer token) is missing, expired or
    invalid, or when no profile exists for the identity. If the profile store
    cannot be read, the role comes from the legacy allowlist and ownership is empty.
    """
    settings = get_settings()
    token = _session_token(request, credentials, settings)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=NOT_AUTHENTICATED_HEADERS,
        )
    try:
        claims = decode_session_token(token)
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers=NOT_AUTHENTICATED_HEADERS,
        )
    identity_id = str(claims["sub"])
    email = str(claims.get("email") or "")
    allowlist = get_legacy_allowlist()

    try:
        profile = db.get(Profile, identity_id, populate_existing=True)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Profile lookup failed; resolving role without profile",
            extra={"identity_id": identity_id, "error_type": type(e).__name__},
        )
        return CurrentPrincipal(
            identity_id=identity_id,
            email=email,
            role=resolve_role(email, None, allowlist),
            profile_available=False,
        )

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No profile for this session",
            headers=NOT_AUTHENTICATED_HEADERS,
        )

    stored_role = parse_role(profile.role)
    role = resolve_role(email or profile.email, stored_role, allowlist)
    if settings.LEGACY_ROLE_BACKFILL and role is not stored_role:
        try:
            OwnershipRegistry(db).promote_default_role(identity_id, role)
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Legacy role backfill failed", extra={"identity_id": identity_id})

    return CurrentPrincipal(
        identity_id=identity_id,
        email=email or profile.email,
        role=role,
        owned_brands=frozenset(profile.owned_brands or ()),
    )


def require_brand_access(
    principal: CurrentPrincipal | None,
    action: Action,
    brand_id: str | None,
) -> None:
    """
    Consult the authorization gate; raise 401/403 on denial before any write happens.

    Denials are logged with the caller, action and target only.
    """
    decision = authorize(
        principal.role if principal is not None else None,
        principal.owned_brands if principal is not None else (),
        action,
        brand_id,
    )
    if decision.allowed:
        return
    logger.warning(
        "Authorization denied",
        extra={
            "identity_id": principal.identity_id if principal is not None else None,
            "action": action.value,
            "brand_id": brand_id,
            "reason": decision.reason.value if decision.reason else None,
        },
    )
    if decision.reason is DenyReason.UNAUTHENTICATED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=NOT_AUTHENTICATED_HEADERS,
        )
    if decision.reason is DenyReason.NOT_OWNER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not manage this brand",
        )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Insufficient role",
    )


def require_administrator(
    principal: Annotated[CurrentPrincipal, Depends(get_current_principal)],
) -> CurrentPrincipal:
    """Dependency: require role admin or super_admin. Raises 403 otherwise."""
    if not is_administrator(principal.role):
        logger.warning(
            "Authorization denied",
            extra={
                "identity_id": principal.identity_id,
                "action": "administer_profiles",
                "reason": DenyReason.INSUFFICIENT_ROLE.value,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return principal


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    response: Response,
    exchanger: Annotated[CredentialExchanger, Depends(get_exchanger)],
) -> SessionResponse:
    """
    Sign in with email and password. The session is set as an HttpOnly cookie;
    the body only summarises it.
    """
    settings = get_settings()
    try:
        result = await exchanger.exchange(
            PasswordPair(email=body.email.strip(), password=body.password),
            state=body.next,
        )
    except InvalidCredentials as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    except ProviderError as e:
        if e.transient:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message) from e
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    except NoSessionIssued as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message) from e
    except ProvisionError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Your profile could not be loaded. Please try again.",
        ) from e

    _set_session_cookie(response, result.session, settings)
    response.headers["Cache-Control"] = "no-store"
    identity = result.session.identity
    role = resolve_role(identity.email, parse_role(result.profile.role), get_legacy_allowlist())
    return SessionResponse(
        identity_id=identity.id,
        email=identity.email,
        role=role,
        expires_at=result.session.expires_at,
        redirect_to=result.redirect_to,
    )


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    response: Response,
    exchanger: Annotated[CredentialExchanger, Depends(get_exchanger)],
) -> SignupResponse:
    """Register with email and password. Signs the user in when no email confirmation is required."""
    try:
        session = await exchanger.sign_up(PasswordPair(email=body.email.strip(), password=body.password))
    except ProviderError as e:
        code = status.HTTP_503_SERVICE_UNAVAILABLE if e.transient else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=e.message) from e
    except NoSessionIssued as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="No user created") from e
    except ProvisionError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Your profile could not be created. Please try again.",
        ) from e

    if session is None:
        return SignupResponse(
            confirmation_required=True,
            message="Account created successfully. Please check your email for confirmation.",
        )
    _set_session_cookie(response, session, get_settings())
    return SignupResponse(
        identity_id=session.identity.id,
        confirmation_required=False,
        message="Account created and logged in successfully",
    )


@router.get("/oauth/{provider}")
def oauth_start(
    provider: str,
    exchanger: Annotated[CredentialExchanger, Depends(get_exchanger)],
    next: Annotated[str | None, Query(max_length=256)] = None,
) -> RedirectResponse:
    """Start an OAuth sign-in: redirect to the provider with a PKCE challenge."""
    settings = get_settings()
    try:
        url, code_verifier = exchanger.authorization_url(provider, next)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown sign-in provider")
    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=settings.PKCE_COOKIE_NAME,
        value=code_verifier,
        max_age=settings.PKCE_COOKIE_MAX_AGE_SEC,
        path=f"{settings.API_V1_PREFIX}/auth",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    response.headers["Cache-Control"] = "private, no-store"
    return response


@router.get("/callback")
async def oauth_callback(
    request: Request,
    exchanger: Annotated[CredentialExchanger, Depends(get_exchanger)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
) -> RedirectResponse:
    """
    OAuth redirect target. On success continue to the validated `state` path (or the
    studio); on failure go to the login page with `error` and `message`.
    """
    settings = get_settings()
    grant = AuthorizationCode(
        code=code,
        code_verifier=request.cookies.get(settings.PKCE_COOKIE_NAME),
        error=error,
        error_description=error_description,
    )
    try:
        result = await exchanger.exchange(grant, state=state)
    except AuthError as e:
        response = RedirectResponse(
            _login_redirect(settings, e.code, e.message), status_code=status.HTTP_302_FOUND
        )
    except ProvisionError:
        response = RedirectResponse(
            _login_redirect(
                settings, "profile_unavailable", "Your profile could not be loaded. Please try again."
            ),
            status_code=status.HTTP_302_FOUND,
        )
    else:
        response = RedirectResponse(result.redirect_to, status_code=status.HTTP_302_FOUND)
        _set_session_cookie(response, result.session, settings)

    response.delete_cookie(settings.PKCE_COOKIE_NAME, path=f"{settings.API_V1_PREFIX}/auth")
    response.headers["Cache-Control"] = "private, no-store"
    return response


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    exchanger: Annotated[CredentialExchanger, Depends(get_exchanger)],
) -> Response:
    """Sign out: revoke the session at the identity backend and clear the cookie."""
    settings = get_settings()
    token = _session_token(request, credentials, settings)
    if token:
        await exchanger.sign_out(token)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/me", response_model=CurrentPrincipal)
def read_current_principal(
    principal: Annotated[CurrentPrincipal, Depends(get_current_principal)],
) -> CurrentPrincipal:
    """Return the caller's identity, effective role and owned brands."""
    return principal
