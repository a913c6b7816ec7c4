"""
Security middleware: request gates for /pro and /admin, and row-level-security context.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

from .access_gate import guard_admin, guard_pro, is_admin_path, is_pro_path
from .admin_auth import ADMIN_COOKIE_NAME, AdminCredentialVerifier
from .auth import resolve_request, set_session_cookies
from .exceptions import StoreNotConfiguredError
from .onboarding import OnboardingState, lookup_state

logger = logging.getLogger(__name__)


class ProAccessMiddleware(BaseHTTPMiddleware):
    """
    Gate for every /pro/** request.

    Resolves the pro session once, decides login / onboarding / allow, and leaves the
    resolved identity on request.state.pro_identity for the route dependencies.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not is_pro_path(path):
            return await call_next(request)

        resolution = await resolve_request(request)
        request.state.pro_identity = resolution.identity
        if resolution.refreshed is not None:
            request.state.pro_access_token = resolution.refreshed.access_token

        def onboarding_state(identity_id: str) -> OnboardingState:
            factory = request.app.state.session_factory
            if factory is None:
                raise StoreNotConfiguredError()
            db = factory()
            try:
                set_rls_context(db, identity_id)
                return lookup_state(db, identity_id)
            finally:
                db.close()

        decision = guard_pro(path, request.url.query, resolution.identity, onboarding_state)

        if decision.allowed:
            response = await call_next(request)
        else:
            logger.debug(f"↪️ {path} -> {decision.redirect_to}")
            response = RedirectResponse(url=decision.redirect_to, status_code=302)

        if resolution.refreshed is not None:
            set_session_cookies(response, resolution.refreshed)

        return response


class AdminAccessMiddleware(BaseHTTPMiddleware):
    """Gate for /admin/**: fails closed on any missing or invalid admin cookie"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not is_admin_path(path):
            return await call_next(request)

        verifier = AdminCredentialVerifier.from_settings(request.app.state.settings)
        is_admin = verifier.is_admin_session(request.cookies.get(ADMIN_COOKIE_NAME))

        decision = guard_admin(path, is_admin)
        if not decision.allowed:
            logger.warning(f"🚫 Admin access denied for {path}")
            return RedirectResponse(url=decision.redirect_to, status_code=302)

        return await call_next(request)


def set_rls_context(db: Session, user_id: str) -> None:
    """
    Set the Row-Level Security (RLS) context for a database session.

    On PostgreSQL the owner id is exposed as app.current_user_id so table policies can
    filter therapist rows; other backends rely on the repository's owner filters alone.

    Args:
        db: SQLAlchemy database session
        user_id: Identity id of the authenticated pro
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    try:
        db.execute(
            text("SELECT set_config('app.current_user_id', :user_id, false)"),
            {"user_id": str(user_id)},
        )
        logger.debug(f"RLS context set for user_id={user_id}")
    except Exception as e:
        logger.error(f"Failed to set RLS context for user_id={user_id}: {e}")
        raise
