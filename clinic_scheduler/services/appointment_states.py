"""Appointment status transitions and actor-scoped cancellation.

``scheduled`` is the only non-terminal status. Every transition is applied as
one conditional UPDATE guarded by the expected current status, so concurrent
callers racing on the same appointment cannot both succeed.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import (
    AuthorizationFailed,
    InvalidTransition,
    NotFoundError,
    ValidationFailed,
)
from clinic_scheduler.models.appointment import Appointment

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


class CancelledBy(str, Enum):
    PATIENT = 'patient'
    PROFESSIONAL = 'professional'
    SYSTEM = 'system'


ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

OUTCOME_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW)

TERMINAL_CANCEL_MESSAGES = {
    AppointmentStatus.CANCELLED: 'Appointment is already cancelled.',
    AppointmentStatus.COMPLETED: 'Appointment was already completed and cannot be cancelled.',
    AppointmentStatus.NO_SHOW: 'Appointment was marked as no-show and cannot be cancelled.',
}


@dataclass
class CancellationResult:
    success: bool
    message: str
    appointment_id: str | None = None

    def as_payload(self) -> dict:
        return {'success': self.success, 'message': self.message}


def is_terminal(status: str | AppointmentStatus) -> bool:
    return not ALLOWED_TRANSITIONS[AppointmentStatus(status)]


def check_transition(current: str | AppointmentStatus, target: str | AppointmentStatus) -> None:
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)

    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f'Cannot move an appointment from {current.value} to {target.value}.')


def validate_cancellation_request(
    cancelled_by: str | None,
    reason: str | None,
    patient_id: str | None,
    professional_id: str | None,
) -> CancelledBy:
    errors: dict[str, list[str]] = {}

    try:
        actor = CancelledBy(cancelled_by)
    except ValueError:
        actor = None
        errors['cancelled_by'] = ['cancelled_by must be patient, professional or system.']

    if actor is CancelledBy.PATIENT and not patient_id:
        errors['patient_id'] = ['patient_id is required when cancelled_by = patient.']
    if actor is CancelledBy.PROFESSIONAL and not professional_id:
        errors['professional_id'] = ['professional_id is required when cancelled_by = professional.']
    if reason is not None and len(reason) > config.MAX_REASON_LENGTH:
        errors['reason'] = [f'reason must be {config.MAX_REASON_LENGTH} characters or fewer.']

    if errors:
        raise ValidationFailed.from_fields(errors, message='Invalid cancellation request')

    return actor


def _ownership_criteria(actor: CancelledBy, patient_id: str | None, professional_id: str | None) -> list:
    if actor is CancelledBy.PATIENT:
        return [Appointment.patient_id == str(patient_id)]
    if actor is CancelledBy.PROFESSIONAL:
        return [Appointment.professional_id == str(professional_id)]
    return []


def ensure_actor_owns(
    appointment: Appointment,
    actor: CancelledBy,
    patient_id: str | None,
    professional_id: str | None,
) -> None:
    if actor is CancelledBy.PATIENT and appointment.patient_id != str(patient_id):
        raise AuthorizationFailed('Patients can only cancel their own appointments.')
    if actor is CancelledBy.PROFESSIONAL and appointment.professional_id != str(professional_id):
        raise AuthorizationFailed('Professionals can only cancel their own appointments.')


def get_appointment(db: Session, appointment_id: str, professional_id: str | None = None) -> Appointment:
    query = db.query(Appointment).filter(Appointment.id == appointment_id)
    if professional_id is not None:
        query = query.filter(Appointment.professional_id == professional_id)

    appointment = query.first()
    if appointment is None:
        raise NotFoundError('Appointment not found.')

    return appointment


def cancel_appointment(
    db: Session,
    appointment_id: str,
    cancelled_by: str | None,
    reason: str | None = None,
    patient_id: str | None = None,
    professional_id: str | None = None,
) -> CancellationResult:
    """Cancel a scheduled appointment on behalf of a patient, professional or the system.

    Malformed requests raise ``ValidationFailed``, ownership mismatches raise
    ``AuthorizationFailed`` before anything is written, and an appointment
    that is no longer ``scheduled`` yields ``success=False``.
    """
    actor = validate_cancellation_request(cancelled_by, reason, patient_id, professional_id)
    appointment = get_appointment(db, appointment_id)
    ensure_actor_owns(appointment, actor, patient_id, professional_id)

    if is_terminal(appointment.status):
        return CancellationResult(
            success=False,
            message=TERMINAL_CANCEL_MESSAGES[AppointmentStatus(appointment.status)],
            appointment_id=appointment_id,
        )

    updated = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.status == AppointmentStatus.SCHEDULED.value,
        *_ownership_criteria(actor, patient_id, professional_id),
    ).update(
        {
            Appointment.status: AppointmentStatus.CANCELLED.value,
            Appointment.cancelled_by: actor.value,
            Appointment.cancellation_reason: reason or None,
            Appointment.cancelled_at: func.now(),
            Appointment.updated_at: func.now(),
        },
        synchronize_session=False,
    )
    db.commit()

    if not updated:
        # Someone else moved it out of "scheduled" between our read and write.
        current = AppointmentStatus(get_appointment(db, appointment_id).status)
        return CancellationResult(
            success=False,
            message=TERMINAL_CANCEL_MESSAGES.get(current, 'Appointment can no longer be cancelled.'),
            appointment_id=appointment_id,
        )

    logger.info('Appointment %s cancelled by %s', appointment_id, actor.value)
    return CancellationResult(success=True, message='Appointment cancelled.', appointment_id=appointment_id)


def record_outcome(
    db: Session,
    appointment_id: str,
    professional_id: str,
    target_status: str,
) -> Appointment:
    """Mark one of the professional's scheduled appointments as completed or no-show."""
    try:
        target = AppointmentStatus(target_status)
    except ValueError:
        target = None

    if target not in OUTCOME_STATUSES:
        raise ValidationFailed.from_fields(
            {'status': ['status must be completed or no_show.']},
            message='Invalid status update',
        )

    appointment = get_appointment(db, appointment_id, professional_id=professional_id)
    check_transition(appointment.status, target)

    updated = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.professional_id == professional_id,
        Appointment.status == AppointmentStatus.SCHEDULED.value,
    ).update(
        {Appointment.status: target.value, Appointment.updated_at: func.now()},
        synchronize_session=False,
    )
    db.commit()

    appointment = get_appointment(db, appointment_id, professional_id=professional_id)
    if not updated:
        check_transition(appointment.status, target)

    logger.info('Appointment %s marked %s by professional %s', appointment_id, target.value, professional_id)
    return appointment
