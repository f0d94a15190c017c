"""
Approval ledger models.

ProjectApproval holds one row per (timesheet, project) with the status of each
review tier. ApprovalHistory is the append-only audit trail of every workflow
action; see ``teamreview.db.immutability``.
"""

from sqlalchemy import Column, String, ForeignKey, Integer, Numeric, DateTime, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
import uuid
import enum

from teamreview.db.base import Base
from teamreview.models.timesheet import TimesheetStatus
from teamreview.utils.dates import utc_now


class ApprovalTier(str, enum.Enum):
    """Review stage in the approval sequence."""
    LEAD = "lead"
    MANAGER = "manager"
    MANAGEMENT = "management"


class TierStatus(str, enum.Enum):
    """Status of one tier on one ledger entry."""
    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApproverRole(str, enum.Enum):
    """Roles allowed to act on the ledger."""
    LEAD = "lead"
    MANAGER = "manager"
    SUPER_ADMIN = "super_admin"
    MANAGEMENT = "management"


class ApprovalAction(str, enum.Enum):
    """Action recorded in the approval history."""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    BILLED = "billed"


class ProjectApproval(Base):
    """Ledger entry for one project's slice of one timesheet."""

    __tablename__ = "timesheet_project_approvals"

    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("timesheets.id", ondelete="CASCADE"), primary_key=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), primary_key=True, index=True)

    # Reviewers at the time the entry was opened
    lead_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    manager_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    lead_status = Column(SQLEnum(TierStatus), nullable=False, default=TierStatus.PENDING)
    lead_approved_at = Column(DateTime, nullable=True)
    lead_rejection_reason = Column(String(1000), nullable=True)

    manager_status = Column(SQLEnum(TierStatus), nullable=False, default=TierStatus.PENDING)
    manager_approved_at = Column(DateTime, nullable=True)
    manager_rejection_reason = Column(String(1000), nullable=True)

    management_status = Column(SQLEnum(TierStatus), nullable=False, default=TierStatus.PENDING)
    management_approved_at = Column(DateTime, nullable=True)
    management_rejection_reason = Column(String(1000), nullable=True)

    entries_count = Column(Integer, nullable=False, default=0)
    total_hours = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def tier_status(self, tier: ApprovalTier) -> TierStatus:
        return getattr(self, f"{tier.value}_status")

    def set_tier(self, tier: ApprovalTier, status: TierStatus, approved_at=None, rejection_reason=None) -> None:
        setattr(self, f"{tier.value}_status", status)
        setattr(self, f"{tier.value}_approved_at", approved_at)
        setattr(self, f"{tier.value}_rejection_reason", rejection_reason)


class ApprovalHistory(Base):
    """One immutable row per workflow action."""

    __tablename__ = "approval_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("timesheets.id"), nullable=False, index=True)
    # Null for timesheet-level actions (submit, verify, bill)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=True, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    approver_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    approver_role = Column(String(32), nullable=False)
    action = Column(SQLEnum(ApprovalAction), nullable=False)
    status_before = Column(SQLEnum(TimesheetStatus), nullable=False)
    status_after = Column(SQLEnum(TimesheetStatus), nullable=False)
    reason = Column(String(1000), nullable=True)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
