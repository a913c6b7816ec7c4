"""Therapist service - Business logic for the pro profile"""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import Identity
from ...models import Therapist
from ...security_middleware import set_rls_context
from ...shared.validators import read_availability, validate_availability, validate_fee_range
from .repository import TherapistRepository
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

logger = logging.getLogger(__name__)


class TherapistService:
    """Service layer for the authenticated pro's own profile"""

    def __init__(self, db: Session, owner: Identity):
        self.db = db
        self.owner = owner
        self.repo = TherapistRepository()
        set_rls_context(db, owner.id)

    def _get_profile(self) -> Therapist:
        therapist = self.repo.get_by_owner(self.db, self.owner.id)
        if not therapist:
            raise HTTPException(status_code=404, detail="Profile not found")
        return therapist

    def _update(self, **updates) -> Therapist:
        try:
            therapist = self.repo.update_for_owner(self.db, self.owner.id, **updates)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error updating profile {self.owner.id}: {e}")
            raise HTTPException(status_code=500, detail="Could not save your changes") from e

        if therapist is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        return therapist

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    def get_onboarding_prefill(self) -> OnboardingPrefill:
        therapist = self.repo.get_by_owner(self.db, self.owner.id)
        if not therapist:
            return OnboardingPrefill()
        return OnboardingPrefill(
            name=therapist.name or "",
            colegiado=therapist.registration_number or "",
            modality=therapist.modality,
            langs=therapist.langs or [],
            onboarding_complete=bool(therapist.onboarding_complete),
        )

    def complete_onboarding(self, data: OnboardingSubmission) -> Therapist:
        """Upsert the minimum profile and mark onboarding as complete"""
        logger.info(f"📥 Completing onboarding for {self.owner.id}")

        fields = {
            "name": data.name,
            "registration_number": data.colegiado,
            "modality": data.modality,
            "langs": data.langs,
            "onboarding_complete": True,
        }
        if self.owner.email:
            fields["email"] = self.owner.email

        try:
            therapist = self.repo.upsert_for_owner(self.db, self.owner.id, **fields)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error saving onboarding for {self.owner.id}: {e}")
            raise HTTPException(status_code=500, detail="Could not save your profile") from e

        logger.info(f"✅ Onboarding complete for {self.owner.id}")
        return therapist

    # ------------------------------------------------------------------
    # Dashboard / profile
    # ------------------------------------------------------------------

    def get_dashboard(self) -> DashboardResponse:
        therapist = self._get_profile()
        return DashboardResponse(
            id=therapist.id,
            name=therapist.name,
            email=therapist.email,
            colegiado=therapist.registration_number,
            modality=therapist.modality,
            price_min=therapist.price_min,
            price_max=therapist.price_max,
            onboarding_complete=bool(therapist.onboarding_complete),
        )

    def get_profile(self) -> ProfileResponse:
        return self._profile_response(self._get_profile())

    def update_profile(self, data: ProfileUpdate) -> ProfileResponse:
        updates = {}
        if data.name is not None:
            updates["name"] = data.name.strip()
        if data.colegiado is not None:
            updates["registration_number"] = data.colegiado.strip()
        if data.modality is not None:
            updates["modality"] = data.modality
        if data.langs is not None:
            if not data.langs:
                raise HTTPException(status_code=400, detail="At least one language is required")
            updates["langs"] = data.langs
        if data.city is not None:
            updates["city"] = data.city
        if data.country is not None:
            updates["country"] = data.country
        if data.website is not None:
            updates["website"] = data.website
        if data.phone is not None:
            updates["phone"] = data.phone
        if data.approaches is not None:
            updates["approaches"] = data.approaches
        if data.specialties is not None:
            updates["specialties"] = data.specialties
        if data.avatarUrl is not None:
            updates["avatar_url"] = data.avatarUrl

        therapist = self._update(**updates)
        logger.info(f"✅ Profile updated for {self.owner.id}: {sorted(updates)}")
        return self._profile_response(therapist)

    @staticmethod
    def _profile_response(therapist: Therapist) -> ProfileResponse:
        return ProfileResponse(
            name=therapist.name,
            colegiado=therapist.registration_number,
            modality=therapist.modality,
            langs=therapist.langs or [],
            city=therapist.city,
            country=therapist.country,
            website=therapist.website,
            phone=therapist.phone,
            approaches=therapist.approaches or [],
            specialties=therapist.specialties or [],
            avatarUrl=therapist.avatar_url,
        )

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def get_fees(self) -> FeeRange:
        therapist = self._get_profile()
        return FeeRange(min=therapist.price_min, max=therapist.price_max)

    def update_fees(self, data: FeeRange) -> FeeRange:
        try:
            validate_fee_range(data.min, data.max)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        therapist = self._update(price_min=data.min, price_max=data.max)
        logger.info(f"💶 Fees updated for {self.owner.id}: {data.min}-{data.max}")
        return FeeRange(min=therapist.price_min, max=therapist.price_max)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def get_availability(self) -> AvailabilityPayload:
        therapist = self._get_profile()
        return AvailabilityPayload(**read_availability(therapist.availability))

    def update_availability(self, data: AvailabilityPayload) -> AvailabilityPayload:
        try:
            availability = validate_availability(data.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        therapist = self._update(availability=availability)
        logger.info(f"📅 Availability updated for {self.owner.id}")
        return AvailabilityPayload(**read_availability(therapist.availability))

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def get_preview(self) -> PreviewResponse:
        therapist = self._get_profile()
        return PreviewResponse(
            name=therapist.name,
            city=therapist.city,
            country=therapist.country,
            langs=therapist.langs or [],
            modality=therapist.modality,
            price_min=therapist.price_min,
            price_max=therapist.price_max,
            avatar_url=therapist.avatar_url,
            approaches=therapist.approaches or [],
            specialties=therapist.specialties or [],
        )
