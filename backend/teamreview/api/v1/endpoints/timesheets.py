"""
Timesheet approval workflow API endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from teamreview.controllers.team_review_controller import TeamReviewController
from teamreview.db.session import get_db
from teamreview.db.transactions import TransactionPolicy
from teamreview.deps.actor import get_current_actor
from teamreview.deps.di_container import get_transaction_policy
from teamreview.models.user import User
from teamreview.schemas.approval import (
    ApprovalHistoryListResponse,
    ApprovalLedgerResponse,
    ApprovalResponse,
    ApproveTimesheetRequest,
    BulkOperationResponse,
    BulkTimesheetRequest,
    FreezeProjectWeekResponse,
    MarkBilledRequest,
    ProjectWeekRejectRequest,
    ProjectWeekRequest,
    ProjectWeekResponse,
    RejectTimesheetRequest,
    TimesheetStatusResponse,
)

router = APIRouter()


def get_controller(
    db: AsyncSession = Depends(get_db),
    transactions: TransactionPolicy = Depends(get_transaction_policy),
) -> TeamReviewController:
    return TeamReviewController(db, transactions)


# Project-week and bulk routes are declared before the /{timesheet_id} routes.

@router.post("/project-week/approve", response_model=ProjectWeekResponse)
async def approve_project_week(
    body: ProjectWeekRequest,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Approve one project's slice of every timesheet in the week."""
    return await controller.approve_project_week(body.project_id, body.week_start, body.week_end, actor)


@router.post("/project-week/reject", response_model=ProjectWeekResponse)
async def reject_project_week(
    body: ProjectWeekRejectRequest,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Reject one project's slice of every timesheet in the week."""
    return await controller.reject_project_week(
        body.project_id, body.week_start, body.week_end, body.reason, actor
    )


@router.post("/project-week/freeze", response_model=FreezeProjectWeekResponse)
async def freeze_project_week(
    body: ProjectWeekRequest,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Management sign-off for a project-week."""
    return await controller.freeze_project_week(body.project_id, body.week_start, body.week_end, actor)


@router.post("/bulk/verify", response_model=BulkOperationResponse)
async def bulk_verify(
    body: BulkTimesheetRequest,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Verify and freeze several timesheets; each one succeeds or fails on its own."""
    return await controller.bulk_verify(body.timesheet_ids, actor)


@router.post("/bulk/bill", response_model=BulkOperationResponse)
async def bulk_bill(
    body: BulkTimesheetRequest,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Bill several frozen timesheets."""
    return await controller.bulk_bill(body.timesheet_ids, actor)


@router.post("/{timesheet_id}/submit", response_model=TimesheetStatusResponse)
async def submit_timesheet(
    timesheet_id: UUID,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Submit timesheet for approval."""
    return await controller.submit_timesheet(timesheet_id, actor)


@router.post("/{timesheet_id}/approve", response_model=ApprovalResponse)
async def approve_timesheet(
    timesheet_id: UUID,
    body: ApproveTimesheetRequest,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Approve one project's slice of a timesheet."""
    return await controller.approve_timesheet(timesheet_id, body.project_id, actor)


@router.post("/{timesheet_id}/reject", response_model=ApprovalResponse)
async def reject_timesheet(
    timesheet_id: UUID,
    body: RejectTimesheetRequest,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Reject one project's slice of a timesheet."""
    return await controller.reject_timesheet(timesheet_id, body.project_id, body.reason, actor)


@router.post("/{timesheet_id}/mark-billed", response_model=TimesheetStatusResponse)
async def mark_billed(
    timesheet_id: UUID,
    body: Optional[MarkBilledRequest] = None,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Mark a frozen timesheet as billed."""
    billing_snapshot_id = body.billing_snapshot_id if body else None
    return await controller.mark_billed(timesheet_id, actor, billing_snapshot_id)


@router.get("/{timesheet_id}/approvals", response_model=ApprovalLedgerResponse)
async def get_approval_ledger(
    timesheet_id: UUID,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Per-project approval records of a timesheet."""
    return await controller.get_approval_ledger(timesheet_id)


@router.get("/{timesheet_id}/history", response_model=ApprovalHistoryListResponse)
async def list_history(
    timesheet_id: UUID,
    controller: TeamReviewController = Depends(get_controller),
    actor: User = Depends(get_current_actor),
):
    """Approval audit trail of a timesheet, oldest first."""
    return await controller.list_history(timesheet_id)
