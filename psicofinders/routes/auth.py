import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..access_gate import PRO_LOGIN_PATH, PRO_PREFIX
from ..auth import (
    CODE_VERIFIER_COOKIE,
    Identity,
    clear_session_cookies,
    complete_sign_in,
    extract_access_token,
    get_current_pro,
    require_identity_provider,
    set_session_cookies,
)
from ..exceptions import IdentityProviderError, SignInError
from ..identity import IdentityProviderClient, ProviderSession
from ..onboarding import PRO_DASHBOARD_PATH, landing_path, lookup_state
from ..shared.validators import safe_next_path

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])

MIN_PASSWORD_LENGTH = 8


class CallbackTokens(BaseModel):
    """Body posted by the browser for the legacy fragment (#access_token=...) sign-in links"""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    code: Optional[str] = None
    code_verifier: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


def _landing_for(request: Request, session: ProviderSession) -> str:
    """Pick the post sign-in page; opened only once the sign-in itself has succeeded"""
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        # The /pro gate repeats this check on the next request
        logger.warning("⚠️ DATABASE_URL not set - cannot read onboarding state after sign-in")
        return PRO_DASHBOARD_PATH

    db: Session = factory()
    try:
        return landing_path(lookup_state(db, session.user.id))
    except SQLAlchemyError as e:
        logger.warning(f"⚠️ Could not read onboarding state after sign-in: {e}")
        return PRO_DASHBOARD_PATH
    finally:
        db.close()


# ============================================================================
# AUTH CALLBACK (invitation / magic-link emails land here)
# ============================================================================


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    provider: IdentityProviderClient = Depends(require_identity_provider),
):
    """Exchange the authorization code, set the session cookies and route the pro"""
    try:
        session = await complete_sign_in(
            provider,
            code=code,
            code_verifier=request.cookies.get(CODE_VERIFIER_COOKIE),
            error=error,
            error_description=error_description,
        )
    except SignInError as e:
        logger.warning(f"❌ Sign-in callback failed: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})

    response = RedirectResponse(url=_landing_for(request, session), status_code=302)
    set_session_cookies(response, session)
    response.delete_cookie(CODE_VERIFIER_COOKIE, path="/")
    logger.info(f"✅ Pro signed in via callback: {session.user.id}")
    return response


@router.post("/auth/callback")
async def auth_callback_tokens(
    data: CallbackTokens,
    request: Request,
    provider: IdentityProviderClient = Depends(require_identity_provider),
):
    """Same as the GET callback, for links that deliver the tokens in the URL fragment"""
    try:
        session = await complete_sign_in(
            provider,
            code=data.code,
            code_verifier=data.code_verifier or request.cookies.get(CODE_VERIFIER_COOKIE),
            access_token=data.access_token,
            refresh_token=data.refresh_token,
            error=data.error,
            error_description=data.error_description,
        )
    except SignInError as e:
        logger.warning(f"❌ Sign-in callback failed: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})

    response = JSONResponse(content={"ok": True, "redirect": _landing_for(request, session)})
    set_session_cookies(response, session)
    logger.info(f"✅ Pro signed in via token callback: {session.user.id}")
    return response


# ============================================================================
# PRO LOGIN / LOGOUT / PASSWORD
# ============================================================================


@router.get(PRO_LOGIN_PATH)
async def login_page(next: Optional[str] = None):
    """Login page model; signed-in pros never get here (the gate sends them to the dashboard)"""
    return {"next": safe_next_path(next, PRO_PREFIX, PRO_DASHBOARD_PATH)}


@router.post(PRO_LOGIN_PATH)
async def login(
    email: str = Form(...),
    password: str = Form(...),
    next: Optional[str] = Form(None),
    provider: IdentityProviderClient = Depends(require_identity_provider),
):
    try:
        session = await provider.sign_in_with_password(email.strip(), password)
    except IdentityProviderError as e:
        logger.info(f"ℹ️ Password sign-in rejected for {email}: {e.message}")
        raise HTTPException(status_code=401, detail=e.message) from e

    response = RedirectResponse(
        url=safe_next_path(next, PRO_PREFIX, PRO_DASHBOARD_PATH), status_code=302
    )
    set_session_cookies(response, session)
    logger.info(f"✅ Pro signed in: {session.user.id}")
    return response


@router.post("/auth/logout")
async def logout(
    request: Request,
    provider: IdentityProviderClient = Depends(require_identity_provider),
):
    token = getattr(request.state, "pro_access_token", None) or extract_access_token(request)
    if token:
        try:
            await provider.sign_out(token)
        except IdentityProviderError as e:
            # Cookies are cleared regardless; the provider session simply expires
            logger.warning(f"⚠️ Provider sign-out failed: {e.message}")

    response = RedirectResponse(url=PRO_LOGIN_PATH, status_code=302)
    clear_session_cookies(response)
    return response


@router.post("/pro/password")
async def change_password(
    request: Request,
    password: str = Form(...),
    confirm: str = Form(...),
    current_pro: Identity = Depends(get_current_pro),
    provider: IdentityProviderClient = Depends(require_identity_provider),
):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if password != confirm:
        raise HTTPException(status_code=400, detail="Passwords do not match")

    token = getattr(request.state, "pro_access_token", None) or extract_access_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        await provider.update_password(token, password)
    except IdentityProviderError as e:
        logger.error(f"❌ Password update failed for {current_pro.id}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message) from e

    logger.info(f"🔑 Password updated for {current_pro.id}")
    return {"ok": True}
