"""Reschedule request model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, Time
from sqlalchemy.sql import func

from detailing_api.database import Base, generate_uuid


class RescheduleRequest(Base):
    """A customer's request to move a booking, pending admin review."""
    __tablename__ = "booking_reschedule_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False)
    customer_id = Column(String(36), ForeignKey("user_profiles.id"), nullable=False)
    time_slot_id = Column(String(36), ForeignKey("time_slots.id"))
    requested_date = Column(Date, nullable=False)
    requested_time = Column(Time, nullable=False)
    requested_end_time = Column(Time)
    reason = Column(Text)
    status = Column(String, nullable=False, default="pending")  # pending/approved/declined
    admin_response = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    responded_at = Column(DateTime)
