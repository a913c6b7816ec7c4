"""Therapist repository - Database operations for pro profiles"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Therapist


class TherapistRepository:
    """
    Repository for therapist rows.

    Every method is keyed by the owner's identity id; there is deliberately no accessor
    that takes an arbitrary row id.
    """

    @staticmethod
    def get_by_owner(db: Session, owner_id: str) -> Optional[Therapist]:
        """Get the caller's own profile row"""
        return db.query(Therapist).filter(Therapist.id == owner_id).first()

    @staticmethod
    def upsert_for_owner(db: Session, owner_id: str, **fields) -> Therapist:
        """Create the caller's row if missing, then apply the given fields"""
        therapist = db.query(Therapist).filter(Therapist.id == owner_id).first()
        if therapist is None:
            therapist = Therapist(id=owner_id)
            db.add(therapist)

        for key, value in fields.items():
            if hasattr(therapist, key):
                setattr(therapist, key, value)

        db.commit()
        db.refresh(therapist)
        return therapist

    @staticmethod
    def update_for_owner(db: Session, owner_id: str, **updates) -> Optional[Therapist]:
        """
        Update the caller's row with the provided fields.

        None values are written through so optional fields can be cleared.
        Returns None when the caller has no row yet.
        """
        therapist = db.query(Therapist).filter(Therapist.id == owner_id).first()
        if therapist is None:
            return None

        for key, value in updates.items():
            if hasattr(therapist, key):
                setattr(therapist, key, value)

        db.commit()
        db.refresh(therapist)
        return therapist
