import os
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('INTERNAL_API_KEY', 'test-internal-key')

from clinic_scheduler.database import Base  # noqa: E402
from clinic_scheduler.models.appointment import Appointment  # noqa: E402
from clinic_scheduler.models.block import Block  # noqa: E402
from clinic_scheduler.models.patient_claim import PatientClaim  # noqa: E402
from clinic_scheduler.models.professional import Professional  # noqa: E402
from clinic_scheduler.services.slot_grid import slot_end_for  # noqa: E402

SCHEDULING_TABLES = [
    Professional.__table__,
    Block.__table__,
    Appointment.__table__,
    PatientClaim.__table__,
]

PATIENT_ID = '2b7c9a52-7d8e-4f2f-9a51-0c6f7e9d1a11'
OTHER_PATIENT_ID = '5e1f0c3b-8a47-4d0e-b6a2-9f3c2d1e7b22'


@pytest.fixture
def scheduling_engine():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=SCHEDULING_TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(SCHEDULING_TABLES)))
        engine.dispose()


@pytest.fixture
def scheduling_db(scheduling_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=scheduling_engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


def make_professional(db, **overrides) -> Professional:
    values = {
        'email': 'dr.silva@example.com',
        'full_name': 'Ana Silva',
        'professional_type': 'doctor',
        'license_number': 'CRM-12345',
        'specialty': 'Family medicine',
        'phone': '+55 11 99999-0000',
        'city': 'Sao Paulo',
        'state': 'SP',
        'is_active': True,
    }
    values.update(overrides)

    professional = Professional(**values)
    db.add(professional)
    db.commit()
    db.refresh(professional)
    return professional


def make_appointment(db, professional, appointment_date=date(2025, 6, 11), slot_start=time(9, 0), **overrides) -> Appointment:
    values = {
        'professional_id': professional.id,
        'patient_id': PATIENT_ID,
        'appointment_date': appointment_date,
        'slot_start': slot_start,
        'slot_end': slot_end_for(slot_start),
        'status': 'scheduled',
    }
    values.update(overrides)

    appointment = Appointment(**values)
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


@pytest.fixture
def professional(scheduling_db):
    return make_professional(scheduling_db)
