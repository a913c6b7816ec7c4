"""Application router - public intake endpoint used by the landing page"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import get_identity_provider
from ...database import get_db
from ...exceptions import MissingFieldError
from .schemas import ApplicationCreated, ProbeResponse, StoreProbe
from .service import ApplicationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/therapists", tags=["Applications"])


def get_application_service(request: Request, db: Session = Depends(get_db)) -> ApplicationService:
    """Dependency injection for ApplicationService; fails with 500 when no store is configured"""
    return ApplicationService(db, request.app.state.settings, get_identity_provider(request))


@router.get("", response_model=ProbeResponse)
async def probe(request: Request):
    """Health probe: reports whether the store and the public site URL are configured"""
    settings = request.app.state.settings
    return ProbeResponse(env=StoreProbe(store=settings.store_configured, site=bool(settings.site_url)))


@router.post("", status_code=201, response_model=ApplicationCreated)
async def submit_application(
    request: Request,
    service: ApplicationService = Depends(get_application_service),
):
    """Accept a sign-up from the landing page and invite the applicant"""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
    if not isinstance(body, dict):
        body = {}

    try:
        invited = await service.submit(body)
    except MissingFieldError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except SQLAlchemyError:
        return JSONResponse(status_code=500, content={"error": "Could not save the application"})

    return ApplicationCreated(invited=invited)
