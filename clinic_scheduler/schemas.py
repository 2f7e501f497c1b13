from datetime import date, datetime, time
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, field_validator

ProfessionalTypeName = Literal['doctor', 'nutritionist', 'therapist']
AppointmentStatusName = Literal['scheduled', 'completed', 'cancelled', 'no_show']
BlockTypeName = Literal['vacation', 'holiday', 'personal', 'other']


def format_clock(value: time | None) -> str | None:
    if value is None:
        return None
    return f'{value:%H:%M}'


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CreateBlockRequest(BaseModel):
    block_date: date
    start_time: time | None = None
    end_time: time | None = None
    block_type: str = 'other'
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def normalize_reason(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class CancelAppointmentRequest(BaseModel):
    cancelled_by: str | None = None
    reason: str | None = None
    patient_id: UUID | None = None
    professional_id: UUID | None = None

    @field_validator('reason')
    @classmethod
    def normalize_reason(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class CancelMyAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def normalize_reason(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class UpdateAppointmentStatusRequest(BaseModel):
    status: str


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class ProfessionalInfoResponse(BaseModel):
    id: str
    full_name: str | None = None
    professional_type: str
    is_complete: bool = False

    class Config:
        from_attributes = True


class PublicProfessionalResponse(BaseModel):
    id: str
    full_name: str
    professional_type: str
    license_number: str
    specialty: str | None = None
    clinic_name: str | None = None
    city: str
    state: str

    class Config:
        from_attributes = True


class ProfessionalsResponse(BaseModel):
    professionals: list[PublicProfessionalResponse]
    pagination: PaginationResponse


class AvailableSlotResponse(BaseModel):
    date: date
    start: str
    end: str
    available_spots: int


class DateRangeResponse(BaseModel):
    start_date: date
    end_date: date


class AvailabilityResponse(BaseModel):
    slots: list[AvailableSlotResponse]
    professional: ProfessionalInfoResponse
    query: DateRangeResponse


class NextAvailableResponse(BaseModel):
    slot: AvailableSlotResponse | None = None


class ScheduleEntryResponse(BaseModel):
    appointment_id: str
    patient_id: str
    appointment_date: date
    slot_start: str
    slot_end: str
    status: AppointmentStatusName
    video_link: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_appointment(cls, appointment) -> 'ScheduleEntryResponse':
        return cls(
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            appointment_date=appointment.appointment_date,
            slot_start=format_clock(appointment.slot_start),
            slot_end=format_clock(appointment.slot_end),
            status=appointment.status,
            video_link=appointment.video_link,
            created_at=appointment.created_at,
        )


class ScheduleResponse(BaseModel):
    schedule: list[ScheduleEntryResponse]
    professional: ProfessionalInfoResponse


class PatientAppointmentResponse(BaseModel):
    id: str
    professional_id: str
    professional_name: str | None = None
    professional_type: str
    specialty: str | None = None
    appointment_date: date
    slot_start: str
    slot_end: str
    status: AppointmentStatusName
    video_link: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, appointment, professional) -> 'PatientAppointmentResponse':
        return cls(
            id=appointment.id,
            professional_id=professional.id,
            professional_name=professional.full_name,
            professional_type=professional.professional_type,
            specialty=professional.specialty,
            appointment_date=appointment.appointment_date,
            slot_start=format_clock(appointment.slot_start),
            slot_end=format_clock(appointment.slot_end),
            status=appointment.status,
            video_link=appointment.video_link,
            created_at=appointment.created_at,
        )


class PatientAppointmentsResponse(BaseModel):
    appointments: list[PatientAppointmentResponse]
    pagination: PaginationResponse


class TeamMemberResponse(BaseModel):
    claim_id: str
    professional_type: str
    professional_id: str
    full_name: str | None = None
    specialty: str | None = None
    license_number: str | None = None
    claimed_at: datetime
    can_change_at: datetime

    @classmethod
    def from_row(cls, claim, professional) -> 'TeamMemberResponse':
        return cls(
            claim_id=claim.id,
            professional_type=claim.professional_type,
            professional_id=professional.id,
            full_name=professional.full_name,
            specialty=professional.specialty,
            license_number=professional.license_number,
            claimed_at=claim.claimed_at,
            can_change_at=claim.can_change_at,
        )


class TeamResponse(BaseModel):
    team: list[TeamMemberResponse]


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    professional_id: str
    appointment_date: date
    slot_start: str
    slot_end: str
    status: AppointmentStatusName
    video_link: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_appointment(cls, appointment) -> 'AppointmentResponse':
        return cls(
            id=appointment.id,
            patient_id=appointment.patient_id,
            professional_id=appointment.professional_id,
            appointment_date=appointment.appointment_date,
            slot_start=format_clock(appointment.slot_start),
            slot_end=format_clock(appointment.slot_end),
            status=appointment.status,
            video_link=appointment.video_link,
            cancelled_at=appointment.cancelled_at,
            cancelled_by=appointment.cancelled_by,
            cancellation_reason=appointment.cancellation_reason,
            created_at=appointment.created_at,
        )


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentResponse]
    pagination: PaginationResponse


class OperationResultResponse(BaseModel):
    success: bool
    message: str


class BlockResponse(BaseModel):
    id: str
    block_date: date
    start_time: str | None = None
    end_time: str | None = None
    block_type: BlockTypeName
    reason: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_block(cls, block) -> 'BlockResponse':
        return cls(
            id=block.id,
            block_date=block.block_date,
            start_time=format_clock(block.start_time),
            end_time=format_clock(block.end_time),
            block_type=block.block_type,
            reason=block.reason,
            created_at=block.created_at,
        )


class BlockListResponse(BaseModel):
    blocks: list[BlockResponse]


class BlockCreatedResponse(BaseModel):
    success: bool
    block_id: str | None = None
    message: str


class PatientSummaryResponse(BaseModel):
    claim_id: str
    patient_id: str
    professional_type: str
    claimed_at: datetime
    can_change_at: datetime
    scheduled_count: int
    completed_count: int
    cancelled_count: int
    last_appointment_date: date | None = None

    class Config:
        from_attributes = True


class PatientsResponse(BaseModel):
    patients: list[PatientSummaryResponse]
    pagination: PaginationResponse
    professional: ProfessionalInfoResponse
