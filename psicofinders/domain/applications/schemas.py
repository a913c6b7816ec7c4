"""Application domain schemas"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

InviteOutcome = Literal["invite", "otp", "skipped"]


class ApplicationCreated(BaseModel):
    ok: bool = True
    invited: InviteOutcome


class StoreProbe(BaseModel):
    """Which backing services this deployment has credentials for"""

    store: bool
    site: bool


class ProbeResponse(BaseModel):
    ok: bool = True
    env: StoreProbe


class ApplicationSummary(BaseModel):
    """One row of the admin backoffice table"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    submitted_at: datetime
    name: str
    email: str
    city: str
    country: str
    colegiado: str
    modality: str
    langs: list[str] = Field(default_factory=list)
    price_min: Optional[float] = None
    price_max: Optional[float] = None


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationSummary]
    total: int


class NormalizedApplication(BaseModel):
    """Intake payload after field checks, truncation and defaulting; ready to insert"""

    submitted_at: datetime
    name: str
    email: str
    phone: Optional[str] = None
    city: str
    country: str
    colegiado: str
    experience: Optional[float] = None
    website: Optional[str] = None
    modality: str = "inperson"
    langs: list[str]
    approaches: list[str] = Field(default_factory=list)
    specialties: list[str] = Field(default_factory=list)
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    availability: Any = None
    notes: Optional[str] = None
    ui_lang: str = "es"
    source: str = "landing-pro-mvp"
