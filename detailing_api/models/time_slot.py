"""Time window model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, Date, Integer, String, Time

from detailing_api.database import Base, generate_uuid


class TimeSlot(Base):
    """An admin-defined bookable window on a calendar date.

    ``is_available`` is derived: it is false when the window is full or when
    an admin closed it by hand (``closed_by_admin``).
    """
    __tablename__ = "time_slots"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_time_slots_start_before_end"),
        CheckConstraint("max_bookings >= 0", name="ck_time_slots_max_bookings"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_bookings = Column(Integer, nullable=False, default=1)
    is_available = Column(Boolean, nullable=False, default=True)
    closed_by_admin = Column(Boolean, nullable=False, default=False)
    notes = Column(String)
