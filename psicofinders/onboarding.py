"""
Onboarding state of a pro account.

NO_ACCOUNT -> INCOMPLETE  first write of the caller's therapist row
INCOMPLETE -> COMPLETE    onboarding submission sets onboarding_complete
There is no way back out of COMPLETE.
"""

from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from .domain.therapists.repository import TherapistRepository
from .models import Therapist

PRO_DASHBOARD_PATH = "/pro/dashboard"
PRO_ONBOARDING_PATH = "/pro/onboarding"


class OnboardingState(str, Enum):
    NO_ACCOUNT = "no_account"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


def classify(therapist: Optional[Therapist]) -> OnboardingState:
    if therapist is None:
        return OnboardingState.NO_ACCOUNT
    if therapist.onboarding_complete:
        return OnboardingState.COMPLETE
    return OnboardingState.INCOMPLETE


def lookup_state(db: Session, identity_id: str) -> OnboardingState:
    return classify(TherapistRepository.get_by_owner(db, identity_id))


def landing_path(state: OnboardingState) -> str:
    """Where a freshly signed-in pro should land"""
    if state == OnboardingState.COMPLETE:
        return PRO_DASHBOARD_PATH
    return PRO_ONBOARDING_PATH
