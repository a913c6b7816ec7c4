import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

INSECURE_DEV_SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in ("false", "0", "no", "off")


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, read once at startup and passed to every component."""

    # Relational store
    database_url: Optional[str] = None
    db_pool_size: int = 20
    db_max_overflow: int = 30
    db_pool_timeout: int = 30
    db_pool_recycle: int = 300
    db_log_slow_queries: bool = True
    db_slow_query_threshold: float = 1.0

    # Admin backoffice: sha256 hex digest of the shared admin password
    admin_password_hash: Optional[str] = None
    secret_key: str = INSECURE_DEV_SECRET_KEY

    # Hosted identity provider (GoTrue-compatible REST API)
    auth_url: Optional[str] = None
    auth_anon_key: Optional[str] = None
    auth_service_role_key: Optional[str] = None

    # Public site origin, used to build callback URLs in invitation emails
    site_url: Optional[str] = None
    auto_invite_pros: bool = True

    environment: str = "development"
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    security_headers_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def store_configured(self) -> bool:
        return bool(self.database_url)

    @property
    def identity_provider_configured(self) -> bool:
        return bool(self.auth_url and self.auth_anon_key)

    @property
    def auth_callback_url(self) -> Optional[str]:
        if not self.site_url:
            return None
        return f"{self.site_url.rstrip('/')}/auth/callback"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment (or an explicit mapping in tests)."""
    env = os.environ if environ is None else environ

    secret_key = _optional(env.get("SECRET_KEY"))
    if not secret_key:
        warnings.warn(
            "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
            RuntimeWarning,
            stacklevel=2,
        )
        secret_key = INSECURE_DEV_SECRET_KEY

    site_url = _optional(env.get("SITE_URL"))
    origins = env.get("ALLOWED_ORIGINS") or site_url or "http://localhost:3000"

    return Settings(
        database_url=_optional(env.get("DATABASE_URL")),
        db_pool_size=int(env.get("DB_POOL_SIZE", "20")),
        db_max_overflow=int(env.get("DB_MAX_OVERFLOW", "30")),
        db_pool_timeout=int(env.get("DB_POOL_TIMEOUT", "30")),
        db_pool_recycle=int(env.get("DB_POOL_RECYCLE", "300")),
        db_log_slow_queries=_flag(env.get("DB_LOG_SLOW_QUERIES"), True),
        db_slow_query_threshold=float(env.get("DB_SLOW_QUERY_THRESHOLD", "1.0")),
        admin_password_hash=_optional(env.get("ADMIN_PASSWORD_HASH")),
        secret_key=secret_key,
        auth_url=_optional(env.get("AUTH_URL")),
        auth_anon_key=_optional(env.get("AUTH_ANON_KEY")),
        auth_service_role_key=_optional(env.get("AUTH_SERVICE_ROLE_KEY")),
        site_url=site_url,
        # Invitations are on unless explicitly disabled with AUTO_INVITE_PROS=false
        auto_invite_pros=_flag(env.get("AUTO_INVITE_PROS"), True),
        environment=env.get("ENVIRONMENT", "development"),
        allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        security_headers_enabled=_flag(env.get("SECURITY_HEADERS_ENABLED"), True),
    )
