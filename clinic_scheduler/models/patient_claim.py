"""Patient-to-professional claim model definitions."""

import uuid
from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from clinic_scheduler.core import config
from clinic_scheduler.database import Base


def claim_unlocks_at(claimed_at: datetime) -> datetime:
    """A patient may swap a claimed professional only after the lock period."""
    return claimed_at + timedelta(days=config.CLAIM_LOCK_DAYS)


class PatientClaim(Base):
    """Records that a patient chose a professional as part of their care team."""
    __tablename__ = "patient_professional_claims"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id = Column(String(36), nullable=False, index=True)
    professional_id = Column(String(36), ForeignKey("clinic_profiles.id"), nullable=False)
    professional_type = Column(String, nullable=False)
    claimed_at = Column(DateTime, server_default=func.now(), nullable=False)

    @property
    def can_change_at(self) -> datetime:
        return claim_unlocks_at(self.claimed_at)
