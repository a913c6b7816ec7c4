"""Application service - Intake of landing-page sign-ups and the admin export"""

import csv
import io
import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import Settings
from ...exceptions import IdentityProviderError, MissingFieldError
from ...identity import IdentityProviderClient
from ...models import MODALITIES, TherapistApplication
from .repository import EXPORT_LIMIT, ApplicationRepository
from .schemas import ApplicationListResponse, ApplicationSummary, NormalizedApplication

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "email", "city", "country", "colegiado", "langs")

EXPORT_COLUMNS = (
    "submitted_at",
    "name",
    "email",
    "phone",
    "city",
    "country",
    "colegiado",
    "experience",
    "website",
    "modality",
    "langs",
    "approaches",
    "specialties",
    "price_min",
    "price_max",
    "availability",
    "notes",
    "ui_lang",
    "source",
)
NOTES_EXPORT_MAX_LENGTH = 1000

# Provider wording for "this email already has an account"
_ALREADY_REGISTERED = re.compile(r"already|exist|registered", re.IGNORECASE)


# ============================================================================
# NORMALIZATION
# ============================================================================


def _number(value: Any) -> Optional[float]:
    """Finite numbers pass through, numeric strings are parsed, anything else is None"""
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)) and not (isinstance(value, str) and value.strip()):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _text(value: Any, max_length: int) -> str:
    return str(value)[:max_length]


def _optional_text(value: Any, max_length: Optional[int] = None) -> Optional[str]:
    if not value:
        return None
    text = str(value)
    return text[:max_length] if max_length else text


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def check_required_fields(body: dict[str, Any]) -> None:
    """Raise MissingFieldError for the first absent field, in form order"""
    for field in REQUIRED_FIELDS:
        if field == "langs":
            langs = body.get("langs")
            if not isinstance(langs, list) or not langs:
                raise MissingFieldError(field)
        elif not body.get(field):
            raise MissingFieldError(field)


def normalize_application(
    body: dict[str, Any], now: Optional[datetime] = None
) -> NormalizedApplication:
    """
    Validate and normalize a raw intake payload.

    Free-text fields are truncated to their column sizes, unknown modalities fall back
    to in-person and unparseable numbers become None.

    Raises:
        MissingFieldError: naming the first missing required field
    """
    check_required_fields(body)

    modality = str(body.get("modality") if body.get("modality") is not None else "inperson")
    if modality not in MODALITIES:
        modality = "inperson"

    return NormalizedApplication(
        submitted_at=now or datetime.now(timezone.utc),
        name=_text(body["name"], 200),
        email=_text(body["email"], 200),
        phone=_optional_text(body.get("phone"), 50),
        city=_text(body["city"], 120),
        country=_text(body["country"], 120),
        colegiado=_text(body["colegiado"], 120),
        experience=_number(body.get("experience")),
        website=_optional_text(body.get("website"), 300),
        modality=modality,
        langs=_string_list(body.get("langs")),
        approaches=_string_list(body.get("approaches")),
        specialties=_string_list(body.get("specialties")),
        price_min=_number(body.get("priceMin")),
        price_max=_number(body.get("priceMax")),
        availability=body.get("availability"),
        notes=_optional_text(body.get("notes")),
        ui_lang=_optional_text(body.get("uiLang")) or "es",
        source=_optional_text(body.get("source")) or "landing-pro-mvp",
    )


# ============================================================================
# CSV EXPORT
# ============================================================================


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _join(values: Any) -> str:
    if not isinstance(values, list):
        return ""
    return "|".join(str(v) for v in values)


def export_row(application: TherapistApplication) -> list[str]:
    availability = application.availability
    return [
        _format_timestamp(application.submitted_at),
        application.name or "",
        application.email or "",
        application.phone or "",
        application.city or "",
        application.country or "",
        application.colegiado or "",
        _format_number(application.experience),
        application.website or "",
        application.modality or "",
        _join(application.langs),
        _join(application.approaches),
        _join(application.specialties),
        _format_number(application.price_min),
        _format_number(application.price_max),
        json.dumps(availability, ensure_ascii=False, separators=(",", ":"))
        if availability is not None
        else "",
        (application.notes or "").replace("\n", " ")[:NOTES_EXPORT_MAX_LENGTH],
        application.ui_lang or "",
        application.source or "",
    ]


def render_csv(applications: list[TherapistApplication]) -> str:
    """Every cell quoted, inner quotes doubled, rows joined by a bare newline"""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for application in applications:
        writer.writerow(export_row(application))
    return buffer.getvalue().rstrip("\n")


def export_filename(today: Optional[datetime] = None) -> str:
    today = today or datetime.now(timezone.utc)
    return f"therapists_{today.strftime('%Y-%m-%d')}.csv"


# ============================================================================
# SERVICE
# ============================================================================


class ApplicationService:
    """Service layer for therapist applications"""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        identity_provider: Optional[IdentityProviderClient] = None,
    ):
        self.db = db
        self.settings = settings
        self.identity_provider = identity_provider
        self.repo = ApplicationRepository()

    async def submit(self, body: dict[str, Any]) -> str:
        """
        Store a new application, then invite the applicant.

        Returns the invitation outcome ("invite", "otp" or "skipped"). The invitation
        is best-effort: the application is already stored when it runs.

        Raises:
            MissingFieldError: the payload lacks a required field
            SQLAlchemyError: the insert failed (the session is rolled back)
        """
        try:
            application = normalize_application(body)
        except MissingFieldError as e:
            logger.info(f"ℹ️ Application rejected: {e}")
            raise

        try:
            created = self.repo.create(self.db, **application.model_dump())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error storing application from {application.email}: {e}")
            raise

        logger.info(f"✅ Application {created.id} stored ({application.source})")
        return await self.invite(application)

    async def invite(self, application: NormalizedApplication) -> str:
        if not self.settings.auto_invite_pros:
            return "skipped"
        if self.identity_provider is None:
            logger.warning("⚠️ Identity provider not configured - invitation skipped")
            return "skipped"

        redirect_to = self.settings.auth_callback_url
        try:
            await self.identity_provider.invite_user_by_email(
                application.email,
                redirect_to=redirect_to,
                data={
                    "name": application.name,
                    "colegiado": application.colegiado,
                    "city": application.city,
                    "country": application.country,
                    "modality": application.modality,
                    "langs": application.langs,
                    "source": application.source,
                },
            )
            logger.info(f"📧 Invitation sent to {application.email}")
            return "invite"
        except IdentityProviderError as e:
            if not _ALREADY_REGISTERED.search(e.message or ""):
                logger.error(f"❌ Invitation failed for {application.email}: {e.message}")
                return "skipped"
            logger.info(f"ℹ️ {application.email} already registered - sending magic link")

        # Existing account: a magic link still gets them into the pro area
        try:
            await self.identity_provider.send_magic_link(application.email, redirect_to=redirect_to)
        except IdentityProviderError as e:
            logger.error(f"❌ Magic link failed for {application.email}: {e.message}")
            return "skipped"
        logger.info(f"📧 Magic link sent to {application.email}")
        return "otp"

    def list_recent(self) -> ApplicationListResponse:
        """Latest applications for the backoffice table"""
        try:
            rows = self.repo.get_recent(self.db)
        except SQLAlchemyError as e:
            logger.error(f"❌ Error loading applications: {e}")
            raise HTTPException(status_code=500, detail="Error loading applications") from e
        return ApplicationListResponse(
            applications=[ApplicationSummary.model_validate(r) for r in rows],
            total=len(rows),
        )

    def export_csv(self) -> str:
        try:
            rows = self.repo.get_recent(self.db, limit=EXPORT_LIMIT)
        except SQLAlchemyError as e:
            logger.error(f"❌ Error exporting applications: {e}")
            raise HTTPException(status_code=500, detail="Error exporting applications") from e
        logger.info(f"📤 Exporting {len(rows)} applications")
        return render_csv(rows)
