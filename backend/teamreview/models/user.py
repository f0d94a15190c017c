"""
User model. Owned by the account subsystem; read-only for the approval workflow.
"""

from sqlalchemy import Column, String, Boolean, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
import uuid
import enum

from teamreview.db.base import Base


class UserRole(str, enum.Enum):
    """Organizational role of a user."""
    EMPLOYEE = "employee"
    LEAD = "lead"
    MANAGER = "manager"
    MANAGEMENT = "management"
    SUPER_ADMIN = "super_admin"


class User(Base):
    """A person who logs time and/or reviews it."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.EMPLOYEE)
    is_active = Column(Boolean, nullable=False, default=True)
