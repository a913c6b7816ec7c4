"""
Client for the hosted identity provider.

The provider speaks the GoTrue REST dialect:
- POST /auth/v1/token?grant_type=pkce|refresh_token|password
- GET/PUT /auth/v1/user
- POST /auth/v1/logout
- POST /auth/v1/invite (service role)
- POST /auth/v1/otp
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .config import Settings
from .exceptions import IdentityProviderError, IdentityProviderNotConfiguredError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class ProviderUser:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class ProviderSession:
    access_token: str
    refresh_token: Optional[str]
    user: ProviderUser
    expires_in: Optional[int] = None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        for key in ("error_description", "msg", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return f"HTTP {response.status_code}"


def _parse_user(payload: dict[str, Any]) -> ProviderUser:
    user_id = payload.get("id")
    if not user_id:
        raise IdentityProviderError("Identity provider returned a user without id")
    return ProviderUser(id=str(user_id), email=payload.get("email"))


def _parse_session(payload: dict[str, Any]) -> ProviderSession:
    access_token = payload.get("access_token")
    if not access_token:
        raise IdentityProviderError("Identity provider did not return a session")
    return ProviderSession(
        access_token=access_token,
        refresh_token=payload.get("refresh_token"),
        user=_parse_user(payload.get("user") or {}),
        expires_in=payload.get("expires_in"),
    )


class IdentityProviderClient:
    """Async wrapper over the identity provider's REST API"""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: Optional[str] = None,
        service_role: bool = False,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        if service_role and not self.service_role_key:
            raise IdentityProviderNotConfiguredError("Missing AUTH_SERVICE_ROLE_KEY")

        api_key = self.service_role_key if service_role else self.anon_key
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {bearer or api_key}",
            "X-Client-Info": "psicofinders-backoffice",
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, f"/auth/v1{path}", headers=headers, params=params, json=json
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Identity provider unreachable ({method} {path}): {e}")
            raise IdentityProviderError("Identity provider unreachable") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.debug(f"Identity provider rejected {method} {path}: HTTP {response.status_code} {message}")
            raise IdentityProviderError(message, response.status_code)

        if not response.content:
            return {}
        return response.json()

    async def get_user(self, access_token: str) -> ProviderUser:
        """Verify an access token and return the user it belongs to"""
        payload = await self._request("GET", "/user", bearer=access_token)
        return _parse_user(payload)

    async def exchange_code_for_session(
        self, auth_code: str, code_verifier: Optional[str]
    ) -> ProviderSession:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier or ""},
        )
        return _parse_session(payload)

    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return _parse_session(payload)

    async def sign_in_with_password(self, email: str, password: str) -> ProviderSession:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return _parse_session(payload)

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", bearer=access_token)

    async def update_password(self, access_token: str, password: str) -> ProviderUser:
        payload = await self._request(
            "PUT", "/user", bearer=access_token, json={"password": password}
        )
        return _parse_user(payload)

    async def invite_user_by_email(
        self, email: str, redirect_to: Optional[str] = None, data: Optional[dict[str, Any]] = None
    ) -> ProviderUser:
        """Create the user if needed and send the invitation email"""
        params = {"redirect_to": redirect_to} if redirect_to else None
        payload = await self._request(
            "POST",
            "/invite",
            service_role=True,
            params=params,
            json={"email": email, "data": data or {}},
        )
        return _parse_user(payload)

    async def send_magic_link(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request(
            "POST", "/otp", params=params, json={"email": email, "create_user": False}
        )


def build_identity_provider(settings: Settings) -> Optional[IdentityProviderClient]:
    """Return a client for the configured provider, or None when it is not configured"""
    if not settings.identity_provider_configured:
        logger.warning("⚠️ AUTH_URL / AUTH_ANON_KEY not set - pro sessions cannot be resolved")
        return None
    return IdentityProviderClient(
        base_url=settings.auth_url,
        anon_key=settings.auth_anon_key,
        service_role_key=settings.auth_service_role_key,
    )
