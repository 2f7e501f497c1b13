"""Professional unavailability block model definitions."""

import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, String, Time, func

from clinic_scheduler.database import Base

BLOCK_TYPES = ('vacation', 'holiday', 'personal', 'other')


class Block(Base):
    """A date (or part of one) on which a professional cannot be booked.

    Both times null means the whole day is blocked.
    """
    __tablename__ = "professional_blocks"
    __table_args__ = (
        CheckConstraint(
            '(start_time IS NULL AND end_time IS NULL) '
            'OR (start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)',
            name='ck_block_time_range',
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    professional_id = Column(String(36), ForeignKey("clinic_profiles.id"), nullable=False, index=True)
    block_date = Column(Date, nullable=False)
    start_time = Column(Time)
    end_time = Column(Time)
    block_type = Column(String, nullable=False, default='other')
    reason = Column(String(500))
    created_at = Column(DateTime, server_default=func.now())

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None
