import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, Response

from .exceptions import IdentityProviderError, IdentityProviderNotConfiguredError, SignInError
from .identity import IdentityProviderClient, ProviderSession

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "pf-access-token"
REFRESH_TOKEN_COOKIE = "pf-refresh-token"
CODE_VERIFIER_COOKIE = "pf-code-verifier"

# Refresh tokens outlive access tokens; the provider decides when they stop working
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


@dataclass(frozen=True)
class Identity:
    """A verified pro account identity"""

    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class SessionResolution:
    identity: Optional[Identity] = None
    # Set when the access token had to be refreshed; the caller rewrites the cookies
    refreshed: Optional[ProviderSession] = None

    @property
    def authenticated(self) -> bool:
        return self.identity is not None


ANONYMOUS = SessionResolution()


def extract_access_token(request: Request) -> Optional[str]:
    """Session cookie first (browser flows), then Authorization: Bearer <token>"""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization") or ""
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


async def resolve_session(
    provider: Optional[IdentityProviderClient],
    access_token: Optional[str],
    refresh_token: Optional[str] = None,
) -> SessionResolution:
    """
    Exchange session tokens for a verified identity.

    Any provider failure resolves to anonymous. A rejected access token is retried once
    through the refresh token, when one is available.
    """
    if provider is None or not (access_token or refresh_token):
        return ANONYMOUS

    if access_token:
        try:
            user = await provider.get_user(access_token)
            return SessionResolution(identity=Identity(id=user.id, email=user.email))
        except IdentityProviderError as e:
            logger.debug(f"Access token rejected: {e.message}")

    if refresh_token:
        try:
            session = await provider.refresh_session(refresh_token)
            logger.info(f"🔄 Session refreshed for user {session.user.id}")
            return SessionResolution(
                identity=Identity(id=session.user.id, email=session.user.email),
                refreshed=session,
            )
        except IdentityProviderError as e:
            logger.info(f"ℹ️ Session refresh failed: {e.message}")

    return ANONYMOUS


async def resolve_request(request: Request) -> SessionResolution:
    return await resolve_session(
        get_identity_provider(request),
        extract_access_token(request),
        request.cookies.get(REFRESH_TOKEN_COOKIE),
    )


def set_session_cookies(response: Response, session: ProviderSession) -> None:
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=session.access_token,
        max_age=SESSION_COOKIE_MAX_AGE,
        httponly=True,
        secure=True,
        samesite="lax",
        path="/",
    )
    if session.refresh_token:
        response.set_cookie(
            key=REFRESH_TOKEN_COOKIE,
            value=session.refresh_token,
            max_age=SESSION_COOKIE_MAX_AGE,
            httponly=True,
            secure=True,
            samesite="lax",
            path="/",
        )


def clear_session_cookies(response: Response) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, CODE_VERIFIER_COOKIE):
        response.delete_cookie(name, path="/", secure=True, httponly=True, samesite="lax")


def get_identity_provider(request: Request) -> Optional[IdentityProviderClient]:
    return getattr(request.app.state, "identity_provider", None)


def require_identity_provider(request: Request) -> IdentityProviderClient:
    provider = get_identity_provider(request)
    if provider is None:
        raise IdentityProviderNotConfiguredError()
    return provider


async def get_current_pro(request: Request) -> Identity:
    """
    Get the authenticated pro for this request.

    The /pro gate middleware has already resolved the session and left the identity on
    request.state; routes outside the gate resolve it here.
    """
    if hasattr(request.state, "pro_identity"):
        identity = request.state.pro_identity
    else:
        identity = (await resolve_request(request)).identity

    if identity is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return identity


async def complete_sign_in(
    provider: IdentityProviderClient,
    *,
    code: Optional[str] = None,
    code_verifier: Optional[str] = None,
    access_token: Optional[str] = None,
    refresh_token: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
) -> ProviderSession:
    """
    Turn an auth callback into a provider session.

    Order of precedence:
    1. an `error` parameter fails immediately with the provider's own wording
    2. an authorization code is exchanged (PKCE)
    3. a legacy access/refresh token pair is verified and accepted as-is
    """
    if error:
        raise SignInError(error_description or error)

    try:
        if code:
            return await provider.exchange_code_for_session(code, code_verifier)

        if access_token and refresh_token:
            user = await provider.get_user(access_token)
            return ProviderSession(
                access_token=access_token, refresh_token=refresh_token, user=user
            )
    except IdentityProviderError as e:
        raise SignInError(e.message) from e

    raise SignInError("Could not create the session")
