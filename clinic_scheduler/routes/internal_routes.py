"""Machine-to-machine endpoints, gated by the shared API key and per-IP rate limits."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clinic_scheduler.auth.api_key import require_api_key
from clinic_scheduler.core import config
from clinic_scheduler.core.rate_limit import create_rate_limiter
from clinic_scheduler.database import get_db, translate_store_errors
from clinic_scheduler.schemas import (
    AppointmentStatusName,
    AvailabilityResponse,
    AvailableSlotResponse,
    CancelAppointmentRequest,
    DateRangeResponse,
    NextAvailableResponse,
    OperationResultResponse,
    PatientAppointmentResponse,
    PatientAppointmentsResponse,
    ProfessionalInfoResponse,
    ProfessionalsResponse,
    ProfessionalTypeName,
    PublicProfessionalResponse,
    ScheduleEntryResponse,
    ScheduleResponse,
    TeamMemberResponse,
    TeamResponse,
)
from clinic_scheduler.services.appointment_states import cancel_appointment
from clinic_scheduler.services.availability import (
    get_available_slots,
    get_next_available_slot,
    require_active_professional,
    resolve_date_range,
)
from clinic_scheduler.services.directory import (
    get_professional_schedule,
    list_patient_appointments,
    list_patient_team,
    list_professionals,
)

router = APIRouter(tags=['internal'])


def _read_limit(operation: str):
    return create_rate_limiter(
        limit=config.INTERNAL_READ_RATE_LIMIT,
        window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
        key_prefix=f'internal:{operation}',
    )


professionals_limit = _read_limit('professionals')
availability_limit = _read_limit('availability')
next_available_limit = _read_limit('next-available')
schedule_limit = _read_limit('schedule')
patient_appointments_limit = _read_limit('patient-appointments')
team_limit = _read_limit('team')
cancel_limit = create_rate_limiter(
    limit=config.INTERNAL_WRITE_RATE_LIMIT,
    window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
    key_prefix='internal:cancel',
)


@router.get(
    '/professionals',
    response_model=ProfessionalsResponse,
    dependencies=[Depends(require_api_key), Depends(professionals_limit)],
)
def list_professionals_directory(
    professional_type: ProfessionalTypeName | None = Query(default=None, alias='type'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'professional directory'):
        professionals, pagination = list_professionals(db, professional_type, page, limit)

        return ProfessionalsResponse(
            professionals=[PublicProfessionalResponse.model_validate(professional) for professional in professionals],
            pagination=pagination.as_dict(),
        )


@router.get(
    '/professionals/{professional_id}/availability',
    response_model=AvailabilityResponse,
    dependencies=[Depends(require_api_key), Depends(availability_limit)],
)
def get_professional_availability(
    professional_id: UUID,
    start_date: date = Query(...),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    start_date, end_date = resolve_date_range(start_date, end_date)

    with translate_store_errors(db, 'availability lookup'):
        professional = require_active_professional(db, str(professional_id))
        slots = get_available_slots(db, professional.id, start_date, end_date)

        return AvailabilityResponse(
            slots=[AvailableSlotResponse(**slot.as_public()) for slot in slots],
            professional=ProfessionalInfoResponse.model_validate(professional),
            query=DateRangeResponse(start_date=start_date, end_date=end_date),
        )


@router.get(
    '/professionals/{professional_id}/next-available',
    response_model=NextAvailableResponse,
    dependencies=[Depends(require_api_key), Depends(next_available_limit)],
)
def get_professional_next_available(
    professional_id: UUID,
    from_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'next available lookup'):
        professional = require_active_professional(db, str(professional_id))
        slot = get_next_available_slot(db, professional.id, from_date or date.today())

        return NextAvailableResponse(slot=AvailableSlotResponse(**slot.as_public()) if slot else None)


@router.get(
    '/professionals/{professional_id}/schedule',
    response_model=ScheduleResponse,
    dependencies=[Depends(require_api_key), Depends(schedule_limit)],
)
def get_schedule_for_professional(
    professional_id: UUID,
    start_date: date = Query(...),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'professional schedule'):
        professional, appointments = get_professional_schedule(db, str(professional_id), start_date, end_date)

        return ScheduleResponse(
            schedule=[ScheduleEntryResponse.from_appointment(appointment) for appointment in appointments],
            professional=ProfessionalInfoResponse.model_validate(professional),
        )


@router.get(
    '/patients/{patient_id}/appointments',
    response_model=PatientAppointmentsResponse,
    dependencies=[Depends(require_api_key), Depends(patient_appointments_limit)],
)
def get_patient_appointments(
    patient_id: UUID,
    status_filter: AppointmentStatusName | None = Query(default=None, alias='status'),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'patient appointments'):
        rows, pagination = list_patient_appointments(
            db,
            str(patient_id),
            status=status_filter,
            from_date=from_date,
            to_date=to_date,
            page=page,
            limit=limit,
        )

        return PatientAppointmentsResponse(
            appointments=[PatientAppointmentResponse.from_row(appointment, professional) for appointment, professional in rows],
            pagination=pagination.as_dict(),
        )


@router.get(
    '/patients/{patient_id}/team',
    response_model=TeamResponse,
    dependencies=[Depends(require_api_key), Depends(team_limit)],
)
def get_patient_team(
    patient_id: UUID,
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'patient team'):
        rows = list_patient_team(db, str(patient_id))
        return TeamResponse(team=[TeamMemberResponse.from_row(claim, professional) for claim, professional in rows])


@router.delete(
    '/appointments/{appointment_id}',
    response_model=OperationResultResponse,
    dependencies=[Depends(require_api_key), Depends(cancel_limit)],
)
def cancel_appointment_for_caller(
    appointment_id: UUID,
    data: CancelAppointmentRequest,
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'appointment cancellation'):
        result = cancel_appointment(
            db,
            str(appointment_id),
            data.cancelled_by,
            reason=data.reason,
            patient_id=str(data.patient_id) if data.patient_id else None,
            professional_id=str(data.professional_id) if data.professional_id else None,
        )

    if not result.success:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result.as_payload())

    return result.as_payload()
