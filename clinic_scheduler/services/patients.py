"""Patient listing for a professional, with per-status appointment counts.

Two interchangeable strategies compute the same summaries: one aggregating
query (needs ``COUNT(...) FILTER (WHERE ...)``) and a per-claim fallback for
databases without it. The choice is made from the dialect's capabilities.
"""

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import and_, func
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Session

from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.patient_claim import PatientClaim, claim_unlocks_at
from clinic_scheduler.services.appointment_states import AppointmentStatus
from clinic_scheduler.services.directory import Pagination

SQLITE_AGGREGATE_FILTER_VERSION = (3, 30, 0)


@dataclass
class PatientSummary:
    claim_id: str
    patient_id: str
    professional_type: str
    claimed_at: datetime
    scheduled_count: int = 0
    completed_count: int = 0
    cancelled_count: int = 0
    last_appointment_date: date | None = None

    @property
    def can_change_at(self) -> datetime:
        return claim_unlocks_at(self.claimed_at)


def _patient_id_contains(search: str):
    escaped = search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return PatientClaim.patient_id.ilike(f'%{escaped}%', escape='\\')


def _claims_query(db: Session, professional_id: str, search: str | None):
    query = db.query(PatientClaim).filter(PatientClaim.professional_id == professional_id)
    if search:
        query = query.filter(_patient_id_contains(search))
    return query


def count_patients(db: Session, professional_id: str, search: str | None = None) -> int:
    return _claims_query(db, professional_id, search).count()


class PatientSummaryStrategy:
    name = 'base'

    def summarize(
        self,
        db: Session,
        professional_id: str,
        search: str | None,
        offset: int,
        limit: int,
    ) -> list[PatientSummary]:
        raise NotImplementedError


class AggregatePatientSummaries(PatientSummaryStrategy):
    name = 'aggregate'

    def summarize(self, db, professional_id, search, offset, limit):
        def status_count(status: AppointmentStatus):
            return func.count(Appointment.id).filter(Appointment.status == status.value)

        query = db.query(
            PatientClaim.id,
            PatientClaim.patient_id,
            PatientClaim.professional_type,
            PatientClaim.claimed_at,
            status_count(AppointmentStatus.SCHEDULED).label('scheduled_count'),
            status_count(AppointmentStatus.COMPLETED).label('completed_count'),
            status_count(AppointmentStatus.CANCELLED).label('cancelled_count'),
            func.max(Appointment.appointment_date).label('last_appointment_date'),
        ).outerjoin(
            Appointment,
            and_(
                Appointment.patient_id == PatientClaim.patient_id,
                Appointment.professional_id == PatientClaim.professional_id,
            ),
        ).filter(PatientClaim.professional_id == professional_id)

        if search:
            query = query.filter(_patient_id_contains(search))

        rows = query.group_by(
            PatientClaim.id,
            PatientClaim.patient_id,
            PatientClaim.professional_type,
            PatientClaim.claimed_at,
        ).order_by(PatientClaim.claimed_at.desc()).offset(offset).limit(limit).all()

        return [
            PatientSummary(
                claim_id=row.id,
                patient_id=row.patient_id,
                professional_type=row.professional_type,
                claimed_at=row.claimed_at,
                scheduled_count=row.scheduled_count or 0,
                completed_count=row.completed_count or 0,
                cancelled_count=row.cancelled_count or 0,
                last_appointment_date=row.last_appointment_date,
            )
            for row in rows
        ]


class PerRowPatientSummaries(PatientSummaryStrategy):
    name = 'per_row'

    def summarize(self, db, professional_id, search, offset, limit):
        claims = _claims_query(db, professional_id, search).order_by(
            PatientClaim.claimed_at.desc(),
        ).offset(offset).limit(limit).all()

        summaries = []
        for claim in claims:
            appointment_filter = (
                Appointment.professional_id == professional_id,
                Appointment.patient_id == claim.patient_id,
            )
            statuses = [status for (status,) in db.query(Appointment.status).filter(*appointment_filter).all()]
            last_date = db.query(func.max(Appointment.appointment_date)).filter(*appointment_filter).scalar()

            summaries.append(
                PatientSummary(
                    claim_id=claim.id,
                    patient_id=claim.patient_id,
                    professional_type=claim.professional_type,
                    claimed_at=claim.claimed_at,
                    scheduled_count=statuses.count(AppointmentStatus.SCHEDULED.value),
                    completed_count=statuses.count(AppointmentStatus.COMPLETED.value),
                    cancelled_count=statuses.count(AppointmentStatus.CANCELLED.value),
                    last_appointment_date=last_date,
                )
            )

        return summaries


def supports_aggregate_filter(dialect: Dialect) -> bool:
    if dialect.name == 'postgresql':
        return True
    if dialect.name == 'sqlite':
        # Filled in by SQLAlchemy from the connected library on first connect.
        version = dialect.server_version_info
        return version is not None and tuple(version) >= SQLITE_AGGREGATE_FILTER_VERSION
    return False


def select_patient_summary_strategy(dialect: Dialect) -> PatientSummaryStrategy:
    if supports_aggregate_filter(dialect):
        return AggregatePatientSummaries()
    return PerRowPatientSummaries()


def list_patients(
    db: Session,
    professional_id: str,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
    strategy: PatientSummaryStrategy | None = None,
) -> tuple[list[PatientSummary], Pagination]:
    strategy = strategy or select_patient_summary_strategy(db.get_bind().dialect)
    pagination = Pagination(page=page, limit=limit, total=count_patients(db, professional_id, search))

    summaries = strategy.summarize(db, professional_id, search, pagination.offset, limit)
    return summaries, pagination
