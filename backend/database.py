import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scheduling.db")

engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _apply_missing_columns(connection, existing_columns: set[str], migration_steps: list[tuple[str, str]]) -> None:
    for column_name, statement in migration_steps:
        if column_name not in existing_columns:
            connection.execute(text(statement))


def ensure_scheduling_schema() -> None:
    """Bring tables created by older deployments up to the current columns."""
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())

        with engine.begin() as connection:
            if 'profiles' in table_names:
                existing_columns = {column['name'] for column in inspector.get_columns('profiles')}
                _apply_missing_columns(connection, existing_columns, [
                    (
                        'allow_parallel_sessions',
                        'ALTER TABLE profiles ADD COLUMN allow_parallel_sessions BOOLEAN NOT NULL DEFAULT FALSE',
                    ),
                    (
                        'buffer_between_sessions',
                        'ALTER TABLE profiles ADD COLUMN buffer_between_sessions INTEGER NOT NULL DEFAULT 0',
                    ),
                ])

            if 'appointments' in table_names:
                existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
                _apply_missing_columns(connection, existing_columns, [
                    ('duration', 'ALTER TABLE appointments ADD COLUMN duration INTEGER'),
                    ('payment_status', 'ALTER TABLE appointments ADD COLUMN payment_status VARCHAR'),
                ])
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_appointments_professional_start '
                        'ON appointments(professional_id, scheduled_at)'
                    )
                )

            if 'blocked_slots' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_blocked_slots_professional_date '
                        'ON blocked_slots(professional_id, blocked_date)'
                    )
                )

        _scheduling_schema_checked = True
