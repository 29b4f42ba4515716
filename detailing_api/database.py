import uuid
import weakref
from threading import Lock

from fastapi import Request
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()

_schema_lock = Lock()
_checked_engines: weakref.WeakSet = weakref.WeakSet()


def generate_uuid() -> str:
    return str(uuid.uuid4())


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith('sqlite'):
        connect_args = {'check_same_thread': False}
        if ':memory:' in database_url:
            return create_engine(database_url, echo=echo, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(database_url, echo=echo, connect_args=connect_args)

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def ensure_schema(engine: Engine) -> None:
    # Importing the models registers their tables on Base.metadata.
    from detailing_api.models import booking, reschedule_request, service, time_slot, user  # noqa: F401

    if engine in _checked_engines:
        return

    with _schema_lock:
        if engine in _checked_engines:
            return

        Base.metadata.create_all(bind=engine)

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())
        schema_statements = []
        if 'time_slots' in table_names:
            existing_columns = {column['name'] for column in inspector.get_columns('time_slots')}
            if 'closed_by_admin' not in existing_columns:
                schema_statements.append(
                    'ALTER TABLE time_slots ADD COLUMN closed_by_admin BOOLEAN NOT NULL DEFAULT FALSE'
                )
            schema_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_time_slots_date_start ON time_slots(slot_date, start_time)'
            )
        if 'bookings' in table_names:
            schema_statements.extend([
                'CREATE INDEX IF NOT EXISTS idx_bookings_date_status ON bookings(scheduled_date, status)',
                'CREATE INDEX IF NOT EXISTS idx_bookings_time_slot ON bookings(time_slot_id)',
                'CREATE INDEX IF NOT EXISTS idx_bookings_customer ON bookings(customer_id, scheduled_date)',
            ])
        if 'booking_reschedule_requests' in table_names:
            schema_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_reschedule_requests_booking_status '
                'ON booking_reschedule_requests(booking_id, status)'
            )

        with engine.begin() as connection:
            for statement in schema_statements:
                connection.execute(text(statement))

        _checked_engines.add(engine)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
