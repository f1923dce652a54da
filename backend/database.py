from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config

engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def _apply_schema_steps(table_name: str, migration_steps: list[tuple[str, str]], index_statements: list[str]) -> None:
    inspector = inspect(engine)

    if table_name not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

    with engine.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        for statement in index_statements:
            connection.execute(text(statement))


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        _apply_schema_steps(
            'availability',
            [
                ('allow_online_requests', 'ALTER TABLE availability ADD COLUMN allow_online_requests BOOLEAN DEFAULT FALSE'),
                ('recurring_rule', 'ALTER TABLE availability ADD COLUMN recurring_rule VARCHAR'),
                ('series_id', 'ALTER TABLE availability ADD COLUMN series_id VARCHAR'),
                ('sequence_index', 'ALTER TABLE availability ADD COLUMN sequence_index INTEGER DEFAULT 0'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_availability_clinician_start ON availability(clinician_id, start_time)',
                'CREATE INDEX IF NOT EXISTS idx_availability_series ON availability(series_id, sequence_index)',
            ],
        )

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        _apply_schema_steps(
            'appointments',
            [
                ('recurring_rule', 'ALTER TABLE appointments ADD COLUMN recurring_rule VARCHAR'),
                ('series_id', 'ALTER TABLE appointments ADD COLUMN series_id VARCHAR'),
                ('sequence_index', 'ALTER TABLE appointments ADD COLUMN sequence_index INTEGER DEFAULT 0'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_appointments_clinician_start ON appointments(clinician_id, start_time)',
                'CREATE INDEX IF NOT EXISTS idx_appointments_series ON appointments(series_id, sequence_index)',
            ],
        )

        _appointment_schema_checked = True
