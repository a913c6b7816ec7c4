import asyncio
import json

import httpx
import pytest

from psicofinders.config import Settings
from psicofinders.exceptions import IdentityProviderError, IdentityProviderNotConfiguredError
from psicofinders.identity import IdentityProviderClient, build_identity_provider

USER = {"id": "user-1", "email": "pro@example.com"}
SESSION = {"access_token": "at", "refresh_token": "rt", "expires_in": 3600, "user": USER}


def _client(handler, service_role_key="service-key"):
    return IdentityProviderClient(
        "https://auth.example/",
        anon_key="anon-key",
        service_role_key=service_role_key,
        transport=httpx.MockTransport(handler),
    )


class Recorder:
    def __init__(self, status=200, payload=None):
        self.status = status
        self.payload = payload
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.payload is None:
            return httpx.Response(self.status)
        return httpx.Response(self.status, json=self.payload)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def test_get_user_sends_bearer_and_apikey():
    recorder = Recorder(payload=USER)

    user = asyncio.run(_client(recorder).get_user("user-token"))

    assert user.id == "user-1"
    assert user.email == "pro@example.com"
    assert recorder.last.url == "https://auth.example/auth/v1/user"
    assert recorder.last.headers["apikey"] == "anon-key"
    assert recorder.last.headers["authorization"] == "Bearer user-token"


def test_exchange_code_uses_pkce_grant():
    recorder = Recorder(payload=SESSION)

    session = asyncio.run(_client(recorder).exchange_code_for_session("the-code", "the-verifier"))

    assert session.access_token == "at"
    assert session.refresh_token == "rt"
    assert session.user.id == "user-1"
    assert recorder.last.method == "POST"
    assert recorder.last.url.path == "/auth/v1/token"
    assert recorder.last.url.params["grant_type"] == "pkce"
    assert json.loads(recorder.last.content) == {"auth_code": "the-code", "code_verifier": "the-verifier"}


def test_refresh_uses_refresh_grant():
    recorder = Recorder(payload=SESSION)

    asyncio.run(_client(recorder).refresh_session("rt-old"))

    assert recorder.last.url.params["grant_type"] == "refresh_token"
    assert json.loads(recorder.last.content) == {"refresh_token": "rt-old"}


def test_password_sign_in():
    recorder = Recorder(payload=SESSION)

    asyncio.run(_client(recorder).sign_in_with_password("pro@example.com", "hunter22"))

    assert recorder.last.url.params["grant_type"] == "password"
    assert json.loads(recorder.last.content) == {"email": "pro@example.com", "password": "hunter22"}


def test_error_message_is_surfaced():
    recorder = Recorder(status=400, payload={"error": "invalid_grant", "error_description": "Invalid Refresh Token"})

    with pytest.raises(IdentityProviderError) as exc_info:
        asyncio.run(_client(recorder).refresh_session("bad"))

    assert exc_info.value.message == "Invalid Refresh Token"
    assert exc_info.value.status_code == 400


def test_msg_field_is_used_when_present():
    recorder = Recorder(status=422, payload={"code": 422, "msg": "User already registered"})

    with pytest.raises(IdentityProviderError, match="User already registered"):
        asyncio.run(_client(recorder).invite_user_by_email("pro@example.com"))


def test_invite_uses_service_role_and_redirect():
    recorder = Recorder(payload=USER)

    asyncio.run(
        _client(recorder).invite_user_by_email(
            "pro@example.com", redirect_to="https://site.example/auth/callback", data={"name": "Pro"}
        )
    )

    assert recorder.last.url.path == "/auth/v1/invite"
    assert recorder.last.url.params["redirect_to"] == "https://site.example/auth/callback"
    assert recorder.last.headers["apikey"] == "service-key"
    assert recorder.last.headers["authorization"] == "Bearer service-key"
    assert json.loads(recorder.last.content) == {"email": "pro@example.com", "data": {"name": "Pro"}}


def test_invite_without_service_role_key():
    recorder = Recorder(payload=USER)

    with pytest.raises(IdentityProviderNotConfiguredError):
        asyncio.run(_client(recorder, service_role_key=None).invite_user_by_email("pro@example.com"))
    assert recorder.requests == []


def test_magic_link_does_not_create_users():
    recorder = Recorder(payload={})

    asyncio.run(_client(recorder).send_magic_link("pro@example.com", redirect_to="https://s/cb"))

    assert recorder.last.url.path == "/auth/v1/otp"
    assert json.loads(recorder.last.content) == {"email": "pro@example.com", "create_user": False}


def test_sign_out_accepts_empty_body():
    recorder = Recorder(status=204)

    asyncio.run(_client(recorder).sign_out("at"))

    assert recorder.last.url.path == "/auth/v1/logout"


def test_network_failure_is_a_provider_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(IdentityProviderError, match="Identity provider unreachable"):
        asyncio.run(_client(handler).get_user("at"))


def test_build_requires_url_and_anon_key():
    assert build_identity_provider(Settings()) is None
    assert build_identity_provider(Settings(auth_url="https://a", auth_anon_key=None)) is None

    client = build_identity_provider(Settings(auth_url="https://a/", auth_anon_key="k"))
    assert client.base_url == "https://a"
