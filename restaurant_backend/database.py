from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from restaurant_backend.core import config


DATABASE_URL = config.DATABASE_URL

engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(engine)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('bookings')}
        migration_steps = [
            ('phone_number', 'ALTER TABLE bookings ADD COLUMN phone_number VARCHAR'),
            ('status', 'ALTER TABLE bookings ADD COLUMN status VARCHAR'),
            ('created_at', 'ALTER TABLE bookings ADD COLUMN created_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_table_start ON bookings(table_id, start_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_time_range ON bookings(start_time, end_time)')
            )

        _booking_schema_checked = True
