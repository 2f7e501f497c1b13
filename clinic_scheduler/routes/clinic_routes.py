from datetime import date, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import get_current_professional
from clinic_scheduler.core import config
from clinic_scheduler.database import get_db, translate_store_errors
from clinic_scheduler.models.professional import Professional
from clinic_scheduler.schemas import (
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusName,
    AvailabilityResponse,
    AvailableSlotResponse,
    BlockCreatedResponse,
    BlockListResponse,
    BlockResponse,
    CancelMyAppointmentRequest,
    CreateBlockRequest,
    DateRangeResponse,
    OperationResultResponse,
    PatientsResponse,
    PatientSummaryResponse,
    ProfessionalInfoResponse,
    ScheduleEntryResponse,
    ScheduleResponse,
    UpdateAppointmentStatusRequest,
)
from clinic_scheduler.services import blocks as block_service
from clinic_scheduler.services.appointment_states import (
    CancelledBy,
    cancel_appointment,
    get_appointment,
    record_outcome,
)
from clinic_scheduler.services.availability import get_available_slots, resolve_date_range
from clinic_scheduler.services.directory import get_professional_schedule, list_professional_appointments
from clinic_scheduler.services.patients import list_patients

router = APIRouter(tags=['clinic'])


@router.get('/blocks', response_model=BlockListResponse)
def list_my_blocks(
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'block listing'):
        blocks = block_service.list_blocks(db, professional.id, from_date, to_date)
        return BlockListResponse(blocks=[BlockResponse.from_block(block) for block in blocks])


@router.post('/blocks', response_model=BlockCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_my_block(
    data: CreateBlockRequest,
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'block creation'):
        result = block_service.create_block(
            db,
            professional.id,
            data.block_date,
            start_time=data.start_time,
            end_time=data.end_time,
            block_type=data.block_type,
            reason=data.reason,
        )

    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={'success': False, 'message': result.message},
        )

    return BlockCreatedResponse(success=True, block_id=result.block_id, message=result.message)


@router.get('/blocks/{block_id}', response_model=BlockResponse)
def get_my_block(
    block_id: UUID,
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'block lookup'):
        return BlockResponse.from_block(block_service.get_block(db, str(block_id), professional.id))


@router.delete('/blocks/{block_id}', response_model=OperationResultResponse)
def delete_my_block(
    block_id: UUID,
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'block removal'):
        result = block_service.delete_block(db, str(block_id), professional.id)

    return OperationResultResponse(success=result.success, message=result.message)


@router.get('/patients', response_model=PatientsResponse)
def list_my_patients(
    search: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'patient listing'):
        summaries, pagination = list_patients(
            db,
            professional.id,
            search=search.strip() if search else None,
            page=page,
            limit=limit,
        )

        return PatientsResponse(
            patients=[PatientSummaryResponse.model_validate(summary) for summary in summaries],
            pagination=pagination.as_dict(),
            professional=ProfessionalInfoResponse.model_validate(professional),
        )


@router.get('/appointments', response_model=AppointmentListResponse)
def list_my_appointments(
    status_filter: AppointmentStatusName | None = Query(default=None, alias='status'),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'appointment listing'):
        appointments, pagination = list_professional_appointments(
            db,
            professional.id,
            status=status_filter,
            from_date=from_date,
            to_date=to_date,
            page=page,
            limit=limit,
        )

        return AppointmentListResponse(
            appointments=[AppointmentResponse.from_appointment(appointment) for appointment in appointments],
            pagination=pagination.as_dict(),
        )


@router.get('/appointments/{appointment_id}', response_model=AppointmentResponse)
def get_my_appointment(
    appointment_id: UUID,
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'appointment lookup'):
        appointment = get_appointment(db, str(appointment_id), professional_id=professional.id)
        return AppointmentResponse.from_appointment(appointment)


@router.delete('/appointments/{appointment_id}', response_model=OperationResultResponse)
def cancel_my_appointment(
    appointment_id: UUID,
    data: CancelMyAppointmentRequest | None = None,
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'appointment cancellation'):
        result = cancel_appointment(
            db,
            str(appointment_id),
            CancelledBy.PROFESSIONAL.value,
            reason=data.reason if data else None,
            professional_id=professional.id,
        )

    if not result.success:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result.as_payload())

    return result.as_payload()


@router.patch('/appointments/{appointment_id}/status', response_model=AppointmentResponse)
def update_my_appointment_status(
    appointment_id: UUID,
    data: UpdateAppointmentStatusRequest,
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    with translate_store_errors(db, 'appointment status update'):
        appointment = record_outcome(db, str(appointment_id), professional.id, data.status)
        return AppointmentResponse.from_appointment(appointment)


@router.get('/schedule', response_model=ScheduleResponse)
def get_my_schedule(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    start_date = start_date or date.today()
    end_date = end_date or start_date + timedelta(days=6)

    with translate_store_errors(db, 'schedule lookup'):
        _, appointments = get_professional_schedule(db, professional.id, start_date, end_date)

        return ScheduleResponse(
            schedule=[ScheduleEntryResponse.from_appointment(appointment) for appointment in appointments],
            professional=ProfessionalInfoResponse.model_validate(professional),
        )


@router.get('/schedule/availability', response_model=AvailabilityResponse)
def get_my_availability(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    professional: Professional = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    start_date, end_date = resolve_date_range(start_date or date.today(), end_date)

    with translate_store_errors(db, 'availability lookup'):
        slots = get_available_slots(db, professional.id, start_date, end_date)

        return AvailabilityResponse(
            slots=[AvailableSlotResponse(**slot.as_public()) for slot in slots],
            professional=ProfessionalInfoResponse.model_validate(professional),
            query=DateRangeResponse(start_date=start_date, end_date=end_date),
        )
