"""
Admin backoffice routes.

Everything under /admin except the login page and its form target sits behind
AdminAccessMiddleware, so these handlers never see an unauthenticated caller.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form
from fastapi.responses import PlainTextResponse, RedirectResponse

from ..access_gate import ADMIN_HOME_PATH, ADMIN_LOGIN_ERROR_URL, ADMIN_LOGIN_PATH
from ..admin_auth import (
    AdminCredentialVerifier,
    clear_admin_cookie,
    get_admin_verifier,
    set_admin_cookie,
)
from ..domain.applications.router import get_application_service
from ..domain.applications.schemas import ApplicationListResponse
from ..domain.applications.service import ApplicationService, export_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/login")
async def login_page(err: Optional[str] = None):
    """Login page model; `error` is set after a rejected attempt"""
    return {"error": bool(err)}


@router.post("/login/authorize")
async def authorize(
    password: str = Form(""),
    verifier: AdminCredentialVerifier = Depends(get_admin_verifier),
):
    """Check the shared admin password and open a 7-day admin session"""
    token = verifier.verify(password)
    if token is None:
        return RedirectResponse(url=ADMIN_LOGIN_ERROR_URL, status_code=302)

    response = RedirectResponse(url=ADMIN_HOME_PATH, status_code=302)
    set_admin_cookie(response, token)
    return response


@router.post("/logout")
async def logout():
    response = RedirectResponse(url=ADMIN_LOGIN_PATH, status_code=302)
    clear_admin_cookie(response)
    return response


@router.get("", response_model=ApplicationListResponse)
async def list_applications(service: ApplicationService = Depends(get_application_service)):
    """Latest 200 applications, newest first"""
    return service.list_recent()


@router.get("/export")
async def export_applications(service: ApplicationService = Depends(get_application_service)):
    """CSV of the latest 1000 applications"""
    return PlainTextResponse(
        content=service.export_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={export_filename()}"},
    )
