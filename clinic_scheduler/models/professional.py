"""Professional (clinic profile) model definitions."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, and_, func

from clinic_scheduler.database import Base

# A profile is complete once every one of these is filled in.
REQUIRED_PROFILE_FIELDS = ('full_name', 'license_number', 'phone', 'city', 'state')


class Professional(Base):
    """Represents a health professional who can be booked."""
    __tablename__ = "clinic_profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String)
    professional_type = Column(String, nullable=False)
    license_number = Column(String)
    specialty = Column(String)
    clinic_name = Column(String)
    phone = Column(String)
    city = Column(String)
    state = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def is_complete(self) -> bool:
        return all(getattr(self, field) is not None for field in REQUIRED_PROFILE_FIELDS)

    @classmethod
    def complete_clause(cls):
        return and_(*(getattr(cls, field).is_not(None) for field in REQUIRED_PROFILE_FIELDS))

