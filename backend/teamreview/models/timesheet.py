"""
Timesheet model - one per user per week.

The timesheet lifecycle (drafting, entry editing, deletion) is owned by the
timesheet editor. Once submitted, ``status`` and the approval stamp fields are
written exclusively by the approval workflow.
"""

from sqlalchemy import Column, String, Date, ForeignKey, Numeric, Boolean, DateTime, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
import uuid
import enum

from teamreview.db.base import Base
from teamreview.utils.dates import utc_now


class TimesheetStatus(str, enum.Enum):
    """Timesheet status enumeration."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    LEAD_APPROVED = "lead_approved"
    LEAD_REJECTED = "lead_rejected"
    MANAGER_APPROVED = "manager_approved"
    MANAGER_REJECTED = "manager_rejected"
    MANAGEMENT_PENDING = "management_pending"
    MANAGEMENT_REJECTED = "management_rejected"
    FROZEN = "frozen"
    BILLED = "billed"


class Timesheet(Base):
    """Weekly work record for one user."""

    __tablename__ = "timesheets"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start_date", name="uq_timesheet_user_week"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start_date = Column(Date, nullable=False, index=True)
    week_end_date = Column(Date, nullable=False)
    total_hours = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(SQLEnum(TimesheetStatus), nullable=False, default=TimesheetStatus.DRAFT, index=True)
    submitted_at = Column(DateTime, nullable=True)

    # Lead tier
    approved_by_lead_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    approved_by_lead_at = Column(DateTime, nullable=True)
    lead_rejection_reason = Column(String(1000), nullable=True)
    lead_rejected_at = Column(DateTime, nullable=True)

    # Manager tier
    approved_by_manager_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    approved_by_manager_at = Column(DateTime, nullable=True)
    manager_rejection_reason = Column(String(1000), nullable=True)
    manager_rejected_at = Column(DateTime, nullable=True)

    # Management tier
    approved_by_management_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    approved_by_management_at = Column(DateTime, nullable=True)
    management_rejection_reason = Column(String(1000), nullable=True)
    management_rejected_at = Column(DateTime, nullable=True)

    # Verification / freeze
    verified_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_frozen = Column(Boolean, nullable=False, default=False)

    # Billing snapshot is computed by the billing subsystem
    billing_snapshot_id = Column(UUID(as_uuid=True), nullable=True)
    billed_at = Column(DateTime, nullable=True)

    # Soft delete
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    deleted_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
