"""Therapist router - the authenticated pro area"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import Identity, get_current_pro
from ...database import get_db
from ...onboarding import PRO_DASHBOARD_PATH
from .schemas import (
    AvailabilityPayload,
    DashboardResponse,
    FeeRange,
    OnboardingPrefill,
    OnboardingSubmission,
    PreviewResponse,
    ProfileResponse,
    ProfileUpdate,
)
from .service import TherapistService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pro", tags=["Pro"])


def get_therapist_service(
    current_pro: Identity = Depends(get_current_pro),
    db: Session = Depends(get_db),
) -> TherapistService:
    """Dependency injection for TherapistService, bound to the caller's identity"""
    return TherapistService(db, current_pro)


# ============================================================================
# ONBOARDING
# ============================================================================


@router.get("/onboarding", response_model=OnboardingPrefill)
async def get_onboarding(service: TherapistService = Depends(get_therapist_service)):
    """Prefill for the onboarding form (empty when the pro has no row yet)"""
    return service.get_onboarding_prefill()


@router.post("/onboarding")
async def submit_onboarding(
    data: OnboardingSubmission,
    service: TherapistService = Depends(get_therapist_service),
):
    """Save the minimum profile and mark onboarding complete"""
    service.complete_onboarding(data)
    return {"ok": True, "redirect": PRO_DASHBOARD_PATH}


# ============================================================================
# PROFILE
# ============================================================================


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(service: TherapistService = Depends(get_therapist_service)):
    return service.get_dashboard()


@router.get("/perfil", response_model=ProfileResponse)
async def get_profile(service: TherapistService = Depends(get_therapist_service)):
    return service.get_profile()


@router.put("/perfil", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    service: TherapistService = Depends(get_therapist_service),
):
    return service.update_profile(data)


@router.get("/honorarios", response_model=FeeRange)
async def get_fees(service: TherapistService = Depends(get_therapist_service)):
    return service.get_fees()


@router.put("/honorarios", response_model=FeeRange)
async def update_fees(
    data: FeeRange,
    service: TherapistService = Depends(get_therapist_service),
):
    """Update the indicative fee range; the minimum cannot exceed the maximum"""
    return service.update_fees(data)


@router.get("/agenda", response_model=AvailabilityPayload)
async def get_availability(service: TherapistService = Depends(get_therapist_service)):
    return service.get_availability()


@router.put("/agenda", response_model=AvailabilityPayload)
async def update_availability(
    data: AvailabilityPayload,
    service: TherapistService = Depends(get_therapist_service),
):
    """Replace the weekly availability (max 3 slots per day, HH:MM, start before end)"""
    return service.update_availability(data)


@router.get("/preview", response_model=PreviewResponse)
async def get_preview(service: TherapistService = Depends(get_therapist_service)):
    return service.get_preview()
