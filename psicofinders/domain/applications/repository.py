"""Application repository - Database operations for landing-page sign-ups"""

from sqlalchemy.orm import Session

from ...models import TherapistApplication

ADMIN_LIST_LIMIT = 200
EXPORT_LIMIT = 1000


class ApplicationRepository:
    """Applications are insert-only; reads are always newest first"""

    @staticmethod
    def create(db: Session, **fields) -> TherapistApplication:
        application = TherapistApplication(**fields)
        db.add(application)
        db.commit()
        db.refresh(application)
        return application

    @staticmethod
    def get_recent(db: Session, limit: int = ADMIN_LIST_LIMIT) -> list[TherapistApplication]:
        return (
            db.query(TherapistApplication)
            .order_by(TherapistApplication.submitted_at.desc(), TherapistApplication.id.desc())
            .limit(limit)
            .all()
        )
