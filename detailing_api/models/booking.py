"""Booking model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Time
from sqlalchemy.sql import func

from detailing_api.database import Base, generate_uuid


class Booking(Base):
    """A customer's reservation. Rows are never deleted, only transitioned."""
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_reference = Column(String, unique=True, index=True, nullable=False)
    customer_id = Column(String(36), ForeignKey("user_profiles.id"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id"))
    time_slot_id = Column(String(36), ForeignKey("time_slots.id"))
    scheduled_date = Column(Date, nullable=False)
    scheduled_start_time = Column(Time, nullable=False)
    scheduled_end_time = Column(Time, nullable=False)
    status = Column(String, nullable=False, default="pending")
    vehicle_size = Column(String(2))
    total_price = Column(Numeric(10, 2, asdecimal=False))
    notes = Column(Text)
    admin_notes = Column(Text)
    cancellation_reason = Column(Text)
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BookingStatusHistory(Base):
    """Audit row written for every booking status change."""
    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    from_status = Column(String)
    to_status = Column(String, nullable=False)
    changed_by = Column(String(36))
    reason = Column(String)
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
