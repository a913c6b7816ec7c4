from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from .database import Base

MODALITIES = ("inperson", "online", "hybrid")


class Therapist(Base):
    """A "pro" account. Exactly one row per identity-provider user, owned by that user."""

    __tablename__ = "therapists"

    id = Column(String(64), primary_key=True, index=True)  # Identity provider user id
    email = Column(String(255), nullable=True)
    name = Column(String(200), nullable=True)
    registration_number = Column("colegiado", String(120), nullable=True)  # Licence number
    modality = Column(String(20), nullable=True)  # inperson, online, hybrid
    langs = Column(JSON, default=list, nullable=False)
    approaches = Column(JSON, default=list, nullable=False)
    specialties = Column(JSON, default=list, nullable=False)
    price_min = Column(Float, nullable=True)
    price_max = Column(Float, nullable=True)
    availability = Column(JSON, nullable=True)  # {"mon": [{"start": "09:00", "end": "13:00"}], ...}
    onboarding_complete = Column(Boolean, default=False, nullable=False)
    avatar_url = Column(String(500), nullable=True)
    city = Column(String(120), nullable=True)
    country = Column(String(120), nullable=True)
    website = Column(String(300), nullable=True)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TherapistApplication(Base):
    """Sign-up submission from the public landing page. Never updated after insert."""

    __tablename__ = "therapist_applications"

    id = Column(Integer, primary_key=True, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    city = Column(String(120), nullable=False)
    country = Column(String(120), nullable=False)
    colegiado = Column(String(120), nullable=False)
    experience = Column(Float, nullable=True)  # Years
    website = Column(String(300), nullable=True)
    modality = Column(String(20), nullable=False, default="inperson")
    langs = Column(JSON, default=list, nullable=False)
    approaches = Column(JSON, default=list, nullable=False)
    specialties = Column(JSON, default=list, nullable=False)
    price_min = Column(Float, nullable=True)
    price_max = Column(Float, nullable=True)
    availability = Column(JSON, nullable=True)  # Stored as submitted
    notes = Column(Text, nullable=True)
    ui_lang = Column(String(10), nullable=False, default="es")
    source = Column(String(100), nullable=False, default="landing-pro-mvp")
