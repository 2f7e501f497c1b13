"""Appointment model definitions."""

import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Time, func

from clinic_scheduler.database import Base


class Appointment(Base):
    """Represents a scheduled appointment between a patient and a professional."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_slot_lookup', 'professional_id', 'appointment_date', 'slot_start', 'status'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    professional_id = Column(String(36), ForeignKey("clinic_profiles.id"), nullable=False)
    patient_id = Column(String(36), nullable=False)
    appointment_date = Column(Date, nullable=False)
    slot_start = Column(Time, nullable=False)
    slot_end = Column(Time, nullable=False)
    status = Column(String, nullable=False, default='scheduled')
    video_link = Column(String)
    cancelled_at = Column(DateTime)
    cancelled_by = Column(String)
    cancellation_reason = Column(String(500))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
