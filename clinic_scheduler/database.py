import logging
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import BackingStoreFailure

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    options = {'echo': config.DATABASE_ECHO, 'pool_pre_ping': True}
    if database_url.startswith('sqlite'):
        options['connect_args'] = {'check_same_thread': False}
    return options


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False

SCHEDULING_INDEXES = {
    'professional_blocks': [
        'CREATE INDEX IF NOT EXISTS idx_blocks_professional_date '
        'ON professional_blocks(professional_id, block_date)',
    ],
    'appointments': [
        'CREATE INDEX IF NOT EXISTS idx_appointments_patient_date '
        'ON appointments(patient_id, appointment_date)',
        'CREATE INDEX IF NOT EXISTS idx_appointments_status_date '
        'ON appointments(status, appointment_date)',
    ],
    'patient_professional_claims': [
        'CREATE INDEX IF NOT EXISTS idx_claims_professional_claimed '
        'ON patient_professional_claims(professional_id, claimed_at)',
    ],
}


def ensure_scheduling_schema() -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        existing_tables = set(inspect(engine).get_table_names())

        with engine.begin() as connection:
            for table_name, statements in SCHEDULING_INDEXES.items():
                if table_name not in existing_tables:
                    continue
                for statement in statements:
                    connection.execute(text(statement))

        logger.info('Scheduling schema indexes verified for %s', sorted(existing_tables.intersection(SCHEDULING_INDEXES)))
        _scheduling_schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def translate_store_errors(db, operation: str):
    """Roll back and surface SQLAlchemy failures as an opaque ``BackingStoreFailure``."""
    try:
        yield
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        logger.exception('Database error during %s', operation)
        raise BackingStoreFailure() from exc
