"""Per-date, per-slot availability for one professional.

A slot's available spots are ``capacity - scheduled appointments`` (never
negative) unless a block covers it, in which case they are zero. Only
``scheduled`` appointments consume capacity.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import NotFoundError, ProfessionalInactive, ValidationFailed
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.professional import Professional
from clinic_scheduler.services.appointment_states import AppointmentStatus
from clinic_scheduler.services.blocks import list_blocks
from clinic_scheduler.services.slot_grid import SLOT_GRID, Slot, intervals_overlap, iter_dates

logger = logging.getLogger(__name__)

NEXT_AVAILABLE_CHUNK_DAYS = 7


@dataclass(frozen=True)
class SlotAvailability:
    date: date
    start: time
    end: time
    available_spots: int
    scheduled_count: int = 0
    blocked: bool = False

    def as_public(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'start': f'{self.start:%H:%M}',
            'end': f'{self.end:%H:%M}',
            'available_spots': self.available_spots,
        }


def require_active_professional(db: Session, professional_id: str) -> Professional:
    professional = db.query(Professional).filter(Professional.id == professional_id).first()

    if professional is None:
        raise NotFoundError('Professional not found.')
    if not professional.is_active:
        raise ProfessionalInactive('Professional is not active.')

    return professional


def resolve_date_range(
    start_date: date,
    end_date: date | None,
    max_days: int = config.MAX_RANGE_DAYS,
) -> tuple[date, date]:
    end_date = end_date or start_date

    if end_date < start_date:
        raise ValidationFailed.from_fields(
            {'end_date': ['end_date must not be earlier than start_date.']},
            message='Invalid query parameters',
        )
    if (end_date - start_date).days + 1 > max_days:
        raise ValidationFailed.from_fields(
            {'end_date': [f'Date range must span at most {max_days} days.']},
            message='Invalid query parameters',
        )

    return start_date, end_date


def count_scheduled_by_slot(
    db: Session,
    professional_id: str,
    start_date: date,
    end_date: date,
) -> dict[tuple[date, time], int]:
    rows = db.query(
        Appointment.appointment_date,
        Appointment.slot_start,
        func.count(Appointment.id),
    ).filter(
        Appointment.professional_id == professional_id,
        Appointment.status == AppointmentStatus.SCHEDULED.value,
        Appointment.appointment_date >= start_date,
        Appointment.appointment_date <= end_date,
    ).group_by(
        Appointment.appointment_date,
        Appointment.slot_start,
    ).all()

    return {(appointment_date, slot_start): count for appointment_date, slot_start, count in rows}


def compute_slot_grid(
    db: Session,
    professional_id: str,
    start_date: date,
    end_date: date,
    capacity: int = config.SLOT_CAPACITY,
    grid: tuple[Slot, ...] = SLOT_GRID,
) -> list[SlotAvailability]:
    """Return every slot in the range, including fully booked or blocked ones."""
    blocks_by_date = defaultdict(list)
    for block in list_blocks(db, professional_id, start_date, end_date):
        blocks_by_date[block.block_date].append(block)

    scheduled = count_scheduled_by_slot(db, professional_id, start_date, end_date)
    rows: list[SlotAvailability] = []

    for current_date in iter_dates(start_date, end_date):
        day_blocks = blocks_by_date.get(current_date, [])

        if any(block.is_full_day for block in day_blocks):
            rows.extend(
                SlotAvailability(
                    date=current_date,
                    start=slot.start,
                    end=slot.end,
                    available_spots=0,
                    scheduled_count=scheduled.get((current_date, slot.start), 0),
                    blocked=True,
                )
                for slot in grid
            )
            continue

        for slot in grid:
            scheduled_count = scheduled.get((current_date, slot.start), 0)
            blocked = any(
                intervals_overlap(slot.start, slot.end, block.start_time, block.end_time)
                for block in day_blocks
            )
            rows.append(
                SlotAvailability(
                    date=current_date,
                    start=slot.start,
                    end=slot.end,
                    available_spots=0 if blocked else max(0, capacity - scheduled_count),
                    scheduled_count=scheduled_count,
                    blocked=blocked,
                )
            )

    return rows


def get_available_slots(
    db: Session,
    professional_id: str,
    start_date: date,
    end_date: date,
    capacity: int = config.SLOT_CAPACITY,
) -> list[SlotAvailability]:
    grid = compute_slot_grid(db, professional_id, start_date, end_date, capacity=capacity)
    available = [row for row in grid if row.available_spots > 0]

    logger.debug(
        'Availability for %s %s..%s: %d of %d slots bookable',
        professional_id,
        start_date,
        end_date,
        len(available),
        len(grid),
    )
    return available


def get_next_available_slot(
    db: Session,
    professional_id: str,
    from_date: date,
    horizon_days: int = config.NEXT_AVAILABLE_HORIZON_DAYS,
    now: datetime | None = None,
) -> SlotAvailability | None:
    """Scan forward from ``from_date`` for the first bookable slot.

    Slots that already started (relative to ``now``) are skipped.
    """
    now = now or datetime.now()
    last_date = from_date + timedelta(days=horizon_days - 1)
    chunk_start = from_date

    while chunk_start <= last_date:
        chunk_end = min(chunk_start + timedelta(days=NEXT_AVAILABLE_CHUNK_DAYS - 1), last_date)

        for row in get_available_slots(db, professional_id, chunk_start, chunk_end):
            if datetime.combine(row.date, row.start) > now:
                return row

        chunk_start = chunk_end + timedelta(days=1)

    return None
