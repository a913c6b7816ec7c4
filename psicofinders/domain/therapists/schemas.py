"""Therapist domain schemas - Pydantic models for the pro area"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_not_blank

Modality = Literal["inperson", "online", "hybrid"]


class TimeSlot(BaseModel):
    start: str
    end: str


class AvailabilityPayload(BaseModel):
    """Weekly availability: day key -> ordered time slots"""

    mon: list[TimeSlot] = Field(default_factory=list)
    tue: list[TimeSlot] = Field(default_factory=list)
    wed: list[TimeSlot] = Field(default_factory=list)
    thu: list[TimeSlot] = Field(default_factory=list)
    fri: list[TimeSlot] = Field(default_factory=list)
    sat: list[TimeSlot] = Field(default_factory=list)
    sun: list[TimeSlot] = Field(default_factory=list)


class OnboardingSubmission(BaseModel):
    """Minimum profile needed before a pro can be shown to patients"""

    name: str
    colegiado: str
    modality: Modality = "online"
    langs: list[str] = Field(default_factory=lambda: ["es"])

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return validate_not_blank(v, "name")

    @field_validator("colegiado")
    @classmethod
    def validate_colegiado(cls, v):
        return validate_not_blank(v, "colegiado")

    @field_validator("langs")
    @classmethod
    def validate_langs(cls, v):
        if not v:
            raise ValueError("At least one language is required")
        return v


class OnboardingPrefill(BaseModel):
    name: str = ""
    colegiado: str = ""
    modality: Optional[Modality] = None
    langs: list[str] = Field(default_factory=list)
    onboarding_complete: bool = False


class ProfileUpdate(BaseModel):
    """Schema for updating profile info; omitted fields are left untouched"""

    name: Optional[str] = None
    colegiado: Optional[str] = None
    modality: Optional[Modality] = None
    langs: Optional[list[str]] = None
    city: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    approaches: Optional[list[str]] = None
    specialties: Optional[list[str]] = None
    avatarUrl: Optional[str] = None


class ProfileResponse(BaseModel):
    name: Optional[str] = None
    colegiado: Optional[str] = None
    modality: Optional[str] = None
    langs: list[str] = Field(default_factory=list)
    city: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    approaches: list[str] = Field(default_factory=list)
    specialties: list[str] = Field(default_factory=list)
    avatarUrl: Optional[str] = None


class FeeRange(BaseModel):
    """Indicative per-session fee range"""

    model_config = ConfigDict(allow_inf_nan=False)

    min: Optional[float] = None
    max: Optional[float] = None


class DashboardResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    colegiado: Optional[str] = None
    modality: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    onboarding_complete: bool


class PreviewResponse(BaseModel):
    """Public card as patients would see it"""

    name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    langs: list[str] = Field(default_factory=list)
    modality: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    avatar_url: Optional[str] = None
    approaches: list[str] = Field(default_factory=list)
    specialties: list[str] = Field(default_factory=list)
