import os
from datetime import date, time

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from detailing_api.database import Base, create_db_engine  # noqa: E402
from detailing_api.models.booking import Booking, BookingStatusHistory  # noqa: E402,F401
from detailing_api.models.reschedule_request import RescheduleRequest  # noqa: E402,F401
from detailing_api.models.service import Service  # noqa: E402
from detailing_api.models.time_slot import TimeSlot  # noqa: E402
from detailing_api.models.user import UserProfile  # noqa: E402

FUTURE_DATE = date(2099, 6, 1)


@pytest.fixture
def db():
    engine = create_db_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def customer(db) -> UserProfile:
    user = UserProfile(
        id='customer-1',
        email='customer@example.com',
        first_name='Casey',
        last_name='Driver',
        role='customer',
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_customer(db) -> UserProfile:
    user = UserProfile(id='customer-2', email='other@example.com', role='customer', is_active=True)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db) -> UserProfile:
    user = UserProfile(id='admin-1', email='admin@example.com', role='admin', is_active=True)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def service(db) -> Service:
    record = Service(
        id='service-1',
        name='Full Valet',
        description='Interior and exterior detail',
        duration_minutes=60,
        base_price=50.0,
        is_active=True,
    )
    db.add(record)
    db.commit()
    return record


def add_window(
    db,
    start: time,
    end: time,
    slot_date: date = FUTURE_DATE,
    max_bookings: int = 1,
    is_available: bool = True,
    window_id: str | None = None,
) -> TimeSlot:
    window = TimeSlot(
        slot_date=slot_date,
        start_time=start,
        end_time=end,
        max_bookings=max_bookings,
        is_available=is_available,
    )
    if window_id is not None:
        window.id = window_id
    db.add(window)
    db.commit()
    db.refresh(window)
    return window


def add_booking(
    db,
    customer_id: str,
    start: time,
    end: time,
    slot_date: date = FUTURE_DATE,
    status: str = 'confirmed',
    time_slot_id: str | None = None,
    total_price: float | None = 60.0,
    reference: str | None = None,
) -> Booking:
    booking = Booking(
        booking_reference=reference or f'REF-{start:%H%M}-{status}-{time_slot_id or "none"}',
        customer_id=customer_id,
        time_slot_id=time_slot_id,
        scheduled_date=slot_date,
        scheduled_start_time=start,
        scheduled_end_time=end,
        status=status,
        total_price=total_price,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking
