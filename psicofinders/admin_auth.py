"""
Shared-secret gate for the admin backoffice.

There is a single admin principal: whoever knows the password whose sha256 hex digest
is configured as ADMIN_PASSWORD_HASH. A successful login issues the digest itself,
signed with SECRET_KEY, as the `admin` cookie.
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import Settings

logger = logging.getLogger(__name__)

ADMIN_COOKIE_NAME = "admin"
ADMIN_SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days
ADMIN_SESSION_SALT = "admin-session"


def hash_secret(secret: str) -> str:
    """sha256 hex digest of a submitted secret"""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def _digests_match(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a.lower(), b.lower())


class AdminCredentialVerifier:
    """Verifies the admin password and resolves admin session cookies"""

    def __init__(self, reference_digest: Optional[str], secret_key: str):
        self.reference_digest = reference_digest
        self._serializer = URLSafeTimedSerializer(secret_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdminCredentialVerifier":
        return cls(settings.admin_password_hash, settings.secret_key)

    def verify(self, submitted_secret: str) -> Optional[str]:
        """
        Check a submitted password.

        Returns:
            A signed session token on success, None on any failure. An unconfigured
            reference digest rejects every attempt.
        """
        if not self.reference_digest:
            logger.error("❌ ADMIN_PASSWORD_HASH not configured - admin login disabled")
            return None

        if not _digests_match(hash_secret(submitted_secret or ""), self.reference_digest):
            logger.warning("🚫 Admin login rejected")
            return None

        logger.info("✅ Admin login accepted")
        return self._serializer.dumps(self.reference_digest, salt=ADMIN_SESSION_SALT)

    def is_admin_session(self, token: Optional[str]) -> bool:
        """Stateless check of an `admin` cookie value against the configured digest"""
        if not token or not self.reference_digest:
            return False
        try:
            digest = self._serializer.loads(
                token, salt=ADMIN_SESSION_SALT, max_age=ADMIN_SESSION_MAX_AGE
            )
        except SignatureExpired:
            logger.info("Admin session expired")
            return False
        except BadSignature:
            logger.warning("Invalid admin session signature")
            return False
        return _digests_match(digest, self.reference_digest)


def get_admin_verifier(request: Request) -> AdminCredentialVerifier:
    """Dependency injection for AdminCredentialVerifier"""
    return AdminCredentialVerifier.from_settings(request.app.state.settings)


def set_admin_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=ADMIN_COOKIE_NAME,
        value=token,
        max_age=ADMIN_SESSION_MAX_AGE,
        httponly=True,
        secure=True,
        samesite="lax",
        path="/",
    )


def clear_admin_cookie(response: Response) -> None:
    response.delete_cookie(ADMIN_COOKIE_NAME, path="/", secure=True, httponly=True, samesite="lax")
