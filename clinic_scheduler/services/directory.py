import math
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import NotFoundError
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.patient_claim import PatientClaim
from clinic_scheduler.models.professional import Professional
from clinic_scheduler.services.availability import resolve_date_range


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def as_dict(self) -> dict:
        return {
            'page': self.page,
            'limit': self.limit,
            'total': self.total,
            'total_pages': self.total_pages,
            'has_next_page': self.page < self.total_pages,
            'has_previous_page': self.page > 1,
        }


def get_professional(db: Session, professional_id: str) -> Professional:
    professional = db.query(Professional).filter(Professional.id == professional_id).first()
    if professional is None:
        raise NotFoundError('Professional not found.')
    return professional


def list_professionals(
    db: Session,
    professional_type: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Professional], Pagination]:
    """Active professionals with a complete profile, ordered by name."""
    query = db.query(Professional).filter(
        Professional.is_active.is_(True),
        Professional.complete_clause(),
    )
    if professional_type:
        query = query.filter(Professional.professional_type == professional_type)

    pagination = Pagination(page=page, limit=limit, total=query.count())
    professionals = query.order_by(Professional.full_name.asc()).offset(pagination.offset).limit(limit).all()

    return professionals, pagination


def get_professional_schedule(
    db: Session,
    professional_id: str,
    start_date: date,
    end_date: date | None = None,
) -> tuple[Professional, list[Appointment]]:
    professional = get_professional(db, professional_id)
    start_date, end_date = resolve_date_range(start_date, end_date)

    appointments = db.query(Appointment).filter(
        Appointment.professional_id == professional_id,
        Appointment.appointment_date >= start_date,
        Appointment.appointment_date <= end_date,
    ).order_by(Appointment.appointment_date.asc(), Appointment.slot_start.asc()).all()

    return professional, appointments


def _apply_appointment_filters(query, status: str | None, from_date: date | None, to_date: date | None):
    if status:
        query = query.filter(Appointment.status == status)
    if from_date is not None:
        query = query.filter(Appointment.appointment_date >= from_date)
    if to_date is not None:
        query = query.filter(Appointment.appointment_date <= to_date)
    return query


def list_patient_appointments(
    db: Session,
    patient_id: str,
    status: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[tuple[Appointment, Professional]], Pagination]:
    query = db.query(Appointment, Professional).join(
        Professional, Professional.id == Appointment.professional_id,
    ).filter(Appointment.patient_id == patient_id)
    query = _apply_appointment_filters(query, status, from_date, to_date)

    pagination = Pagination(page=page, limit=limit, total=query.count())
    rows = query.order_by(
        Appointment.appointment_date.desc(),
        Appointment.slot_start.desc(),
    ).offset(pagination.offset).limit(limit).all()

    return rows, pagination


def list_professional_appointments(
    db: Session,
    professional_id: str,
    status: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Appointment], Pagination]:
    query = db.query(Appointment).filter(Appointment.professional_id == professional_id)
    query = _apply_appointment_filters(query, status, from_date, to_date)

    pagination = Pagination(page=page, limit=limit, total=query.count())
    appointments = query.order_by(
        Appointment.appointment_date.desc(),
        Appointment.slot_start.desc(),
    ).offset(pagination.offset).limit(limit).all()

    return appointments, pagination


def list_patient_team(db: Session, patient_id: str) -> list[tuple[PatientClaim, Professional]]:
    """The professionals a patient has claimed, oldest claim first."""
    return db.query(PatientClaim, Professional).join(
        Professional, Professional.id == PatientClaim.professional_id,
    ).filter(
        PatientClaim.patient_id == patient_id,
    ).order_by(PatientClaim.claimed_at.asc()).all()
