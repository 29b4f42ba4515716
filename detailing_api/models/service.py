"""Detailing service model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from detailing_api.database import Base, generate_uuid


class Service(Base):
    """A detailing service customers can book."""
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    description = Column(Text)
    duration_minutes = Column(Integer, nullable=False)
    base_price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    is_active = Column(Boolean, default=True)


class ServicePricing(Base):
    """Admin-set prices per vehicle size. Empty columns fall back to the size multiplier."""
    __tablename__ = "service_pricing"

    id = Column(Integer, primary_key=True)
    service_id = Column(String(36), ForeignKey("services.id"), unique=True, nullable=False)
    small = Column(Numeric(10, 2, asdecimal=False))
    medium = Column(Numeric(10, 2, asdecimal=False))
    large = Column(Numeric(10, 2, asdecimal=False))
    extra_large = Column(Numeric(10, 2, asdecimal=False))
    updated_by = Column(String(36))
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
