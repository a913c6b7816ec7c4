from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from psicofinders.admin_auth import hash_secret
from psicofinders.auth import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from psicofinders.config import Settings
from psicofinders.database import Base, build_engine, build_session_factory
from psicofinders.exceptions import IdentityProviderError
from psicofinders.identity import ProviderSession, ProviderUser
from psicofinders.main import create_app
from psicofinders.models import Therapist

ADMIN_PASSWORD = "correct horse battery staple"

ALICE = ProviderUser(id="user-alice", email="alice@example.com")
BOB = ProviderUser(id="user-bob", email="bob@example.com")


class FakeIdentityProvider:
    """In-memory stand-in for IdentityProviderClient; records every call it receives"""

    def __init__(self):
        self.access_tokens: dict[str, ProviderUser] = {}
        self.refresh_tokens: dict[str, ProviderUser] = {}
        self.auth_codes: dict[str, ProviderUser] = {}
        self.passwords: dict[str, tuple[str, ProviderUser]] = {}
        self.invite_error: Optional[str] = None
        self.magic_link_error: Optional[str] = None
        self.lookup_error: Optional[str] = None
        self.invites: list[dict[str, Any]] = []
        self.magic_links: list[dict[str, Any]] = []
        self.signed_out: list[str] = []
        self.password_updates: list[tuple[str, str]] = []
        self.exchanges: list[tuple[str, Optional[str]]] = []
        self._issued = 0

    def issue_session(self, user: ProviderUser) -> ProviderSession:
        self._issued += 1
        access = f"access-{user.id}-{self._issued}"
        refresh = f"refresh-{user.id}-{self._issued}"
        self.access_tokens[access] = user
        self.refresh_tokens[refresh] = user
        return ProviderSession(access_token=access, refresh_token=refresh, user=user, expires_in=3600)

    async def get_user(self, access_token: str) -> ProviderUser:
        if self.lookup_error:
            raise IdentityProviderError(self.lookup_error, 503)
        user = self.access_tokens.get(access_token)
        if user is None:
            raise IdentityProviderError("invalid JWT", 401)
        return user

    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        user = self.refresh_tokens.pop(refresh_token, None)
        if user is None:
            raise IdentityProviderError("Invalid Refresh Token", 400)
        return self.issue_session(user)

    async def exchange_code_for_session(
        self, auth_code: str, code_verifier: Optional[str] = None
    ) -> ProviderSession:
        self.exchanges.append((auth_code, code_verifier))
        user = self.auth_codes.pop(auth_code, None)
        if user is None:
            raise IdentityProviderError("invalid flow state, no valid flow state found", 404)
        return self.issue_session(user)

    async def sign_in_with_password(self, email: str, password: str) -> ProviderSession:
        expected = self.passwords.get(email)
        if expected is None or expected[0] != password:
            raise IdentityProviderError("Invalid login credentials", 400)
        return self.issue_session(expected[1])

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)
        self.access_tokens.pop(access_token, None)

    async def update_password(self, access_token: str, password: str) -> ProviderUser:
        user = await self.get_user(access_token)
        self.password_updates.append((user.id, password))
        return user

    async def invite_user_by_email(
        self, email: str, redirect_to: Optional[str] = None, data: Optional[dict] = None
    ) -> ProviderUser:
        self.invites.append({"email": email, "redirect_to": redirect_to, "data": data})
        if self.invite_error:
            raise IdentityProviderError(self.invite_error, 422)
        return ProviderUser(id=f"invited-{email}", email=email)

    async def send_magic_link(self, email: str, redirect_to: Optional[str] = None) -> None:
        self.magic_links.append({"email": email, "redirect_to": redirect_to})
        if self.magic_link_error:
            raise IdentityProviderError(self.magic_link_error, 429)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        db_log_slow_queries=False,
        admin_password_hash=hash_secret(ADMIN_PASSWORD),
        secret_key="test-secret-key",
        auth_url="https://auth.psicofinders.test",
        auth_anon_key="anon-key",
        auth_service_role_key="service-role-key",
        site_url="https://psicofinders.test",
        environment="test",
    )


@pytest.fixture
def engine(settings):
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def app(settings, engine, identity_provider):
    return create_app(settings=settings, identity_provider=identity_provider, engine=engine)


@pytest.fixture
def client(app):
    # Session cookies are Secure, so the client must talk https
    return TestClient(app, base_url="https://testserver")


@pytest.fixture
def seed_therapist(db_session):
    def _seed(user: ProviderUser, **fields) -> Therapist:
        therapist = Therapist(id=user.id, email=user.email, **fields)
        db_session.add(therapist)
        db_session.commit()
        db_session.refresh(therapist)
        return therapist

    return _seed


@pytest.fixture
def login_as(client, identity_provider):
    """Give the test client a live provider session for `user`"""

    def _login(user: ProviderUser) -> ProviderSession:
        session = identity_provider.issue_session(user)
        client.cookies.set(ACCESS_TOKEN_COOKIE, session.access_token)
        client.cookies.set(REFRESH_TOKEN_COOKIE, session.refresh_token)
        return session

    return _login


@pytest.fixture
def onboarded_pro(seed_therapist, login_as):
    seed_therapist(ALICE, name="Alice Doe", registration_number="M-1234", onboarding_complete=True)
    return login_as(ALICE)
