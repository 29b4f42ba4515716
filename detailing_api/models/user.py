"""User profile model definitions."""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from detailing_api.database import Base, generate_uuid


class UserProfile(Base):
    """Profile row for an account managed by the external auth provider."""
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String)
    last_name = Column(String)
    phone = Column(String)
    role = Column(String, default="customer")  # customer/admin/super_admin
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
