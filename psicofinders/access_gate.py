"""
Routing decisions for the /pro area and the /admin backoffice.

These functions take already-extracted request facts and return a Decision; the
middleware in security_middleware.py adapts them to Starlette requests and responses.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode

from .auth import Identity
from .onboarding import PRO_DASHBOARD_PATH, PRO_ONBOARDING_PATH, OnboardingState

logger = logging.getLogger(__name__)

PRO_PREFIX = "/pro"
PRO_LOGIN_PATH = "/pro/login"

ADMIN_PREFIX = "/admin"
ADMIN_HOME_PATH = "/admin"
ADMIN_LOGIN_PATH = "/admin/login"
ADMIN_AUTHORIZE_PATH = "/admin/login/authorize"
ADMIN_LOGIN_ERROR_URL = "/admin/login?err=1"
ADMIN_OPEN_PATHS = frozenset({ADMIN_LOGIN_PATH, ADMIN_AUTHORIZE_PATH})


class RouteKind(str, Enum):
    LOGIN = "login"
    ONBOARDING = "onboarding"
    OTHER_PROTECTED = "other_protected"


@dataclass(frozen=True)
class Decision:
    redirect_to: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None

    @classmethod
    def redirect(cls, target: str) -> "Decision":
        return cls(redirect_to=target)


ALLOW = Decision()


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(f"{prefix}/")


def is_pro_path(path: str) -> bool:
    return _under(path, PRO_PREFIX)


def is_admin_path(path: str) -> bool:
    return _under(path, ADMIN_PREFIX)


def classify_pro_path(path: str) -> RouteKind:
    if path == PRO_LOGIN_PATH:
        return RouteKind.LOGIN
    if path.startswith(PRO_ONBOARDING_PATH):
        return RouteKind.ONBOARDING
    return RouteKind.OTHER_PROTECTED


def login_redirect_target(path: str, query: str = "") -> str:
    """Login URL carrying the original destination, unless that destination is login itself"""
    next_path = path + (f"?{query}" if query else "")
    if not next_path or next_path == PRO_LOGIN_PATH:
        return PRO_LOGIN_PATH
    return f"{PRO_LOGIN_PATH}?{urlencode({'next': next_path}, safe='/')}"


def guard_pro(
    path: str,
    query: str,
    identity: Optional[Identity],
    lookup_state: Callable[[str], OnboardingState],
) -> Decision:
    """
    Decide whether a /pro request may proceed.

    Identity problems fail closed (redirect to login). A failing onboarding lookup
    fails open so a store hiccup does not lock every pro out of the site.
    """
    kind = classify_pro_path(path)

    if identity is None:
        if kind == RouteKind.OTHER_PROTECTED:
            return Decision.redirect(login_redirect_target(path, query))
        return ALLOW

    if kind == RouteKind.LOGIN:
        return Decision.redirect(PRO_DASHBOARD_PATH)

    if kind != RouteKind.ONBOARDING:
        try:
            state = lookup_state(identity.id)
        except Exception as e:
            logger.warning(f"⚠️ Onboarding lookup failed for {identity.id}, letting request through: {e}")
            return ALLOW

        if state != OnboardingState.COMPLETE:
            return Decision.redirect(PRO_ONBOARDING_PATH)

    return ALLOW


def guard_admin(path: str, is_admin: bool) -> Decision:
    """Admin area is all-or-nothing, except for the login page and its form target"""
    # "/admin/login/" is the same page as "/admin/login"
    if not is_admin_path(path) or (path.rstrip("/") or "/") in ADMIN_OPEN_PATHS:
        return ALLOW
    if is_admin:
        return ALLOW
    return Decision.redirect(ADMIN_LOGIN_ERROR_URL)
