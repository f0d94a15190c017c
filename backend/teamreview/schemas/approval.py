"""
Approval workflow Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, Field, StringConstraints, model_validator
from typing import Annotated, Optional, List
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

from teamreview.core.config import settings
from teamreview.models.approval import ApprovalAction, TierStatus
from teamreview.models.timesheet import TimesheetStatus

# Length is checked after surrounding whitespace is stripped
RejectionReason = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=settings.REJECTION_REASON_MIN_LENGTH,
        max_length=1000,
    ),
]


class ApproveTimesheetRequest(BaseModel):
    """Approve one project's slice of a timesheet."""
    project_id: UUID


class RejectTimesheetRequest(BaseModel):
    """Reject one project's slice of a timesheet."""
    project_id: UUID
    reason: RejectionReason


class ApprovalResponse(BaseModel):
    """Result of a single-record approve/reject."""
    success: bool
    message: str
    all_approved: bool
    new_status: str


class ProjectWeekRequest(BaseModel):
    """Target of a bulk project-week operation."""
    project_id: UUID
    week_start: date
    week_end: date

    @model_validator(mode="after")
    def check_range(self):
        if self.week_end < self.week_start:
            raise ValueError("week_end must not be before week_start")
        return self


class ProjectWeekRejectRequest(ProjectWeekRequest):
    """Bulk project-week rejection."""
    reason: RejectionReason


class ProjectWeekInfo(BaseModel):
    project_name: str
    week_label: str


class BulkItemResult(BaseModel):
    """A bulk item that was skipped or failed, and why."""
    user_id: UUID
    user_name: str
    reason: str


class ProjectWeekResponse(BaseModel):
    """Result of bulk approve/reject."""
    success: bool
    message: str
    affected_users: int
    affected_timesheets: int
    project_week: ProjectWeekInfo
    skipped: List[BulkItemResult] = []


class FreezeProjectWeekResponse(BaseModel):
    """Result of bulk freeze."""
    success: bool
    message: str
    frozen_count: int
    skipped_count: int
    failed: List[BulkItemResult] = []
    project_week: Optional[ProjectWeekInfo] = None


class BulkTimesheetRequest(BaseModel):
    """Request for bulk verify/bill."""
    timesheet_ids: List[UUID] = Field(..., min_length=1)


class BulkOperationResponse(BaseModel):
    processed_count: int
    failed_count: int


class MarkBilledRequest(BaseModel):
    billing_snapshot_id: Optional[UUID] = None


class TimesheetStatusResponse(BaseModel):
    """Timesheet status after a workflow action."""
    id: UUID
    user_id: UUID
    week_start_date: date
    week_end_date: date
    status: TimesheetStatus
    total_hours: Decimal
    is_frozen: bool
    submitted_at: Optional[datetime] = None
    billed_at: Optional[datetime] = None
    billing_snapshot_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class ProjectApprovalResponse(BaseModel):
    """One ledger entry."""
    timesheet_id: UUID
    project_id: UUID
    lead_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    lead_status: TierStatus
    lead_approved_at: Optional[datetime] = None
    lead_rejection_reason: Optional[str] = None
    manager_status: TierStatus
    manager_approved_at: Optional[datetime] = None
    manager_rejection_reason: Optional[str] = None
    management_status: TierStatus
    management_approved_at: Optional[datetime] = None
    management_rejection_reason: Optional[str] = None
    entries_count: int
    total_hours: Decimal

    class Config:
        from_attributes = True


class ApprovalLedgerResponse(BaseModel):
    timesheet_id: UUID
    status: TimesheetStatus
    is_frozen: bool
    approvals: List[ProjectApprovalResponse]


class ApprovalHistoryResponse(BaseModel):
    """One audit trail row."""
    id: UUID
    timesheet_id: UUID
    project_id: Optional[UUID] = None
    user_id: UUID
    approver_id: Optional[UUID] = None
    approver_role: str
    action: ApprovalAction
    status_before: TimesheetStatus
    status_after: TimesheetStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalHistoryListResponse(BaseModel):
    items: List[ApprovalHistoryResponse]
    total: int
