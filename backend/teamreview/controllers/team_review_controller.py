"""
Team review controller - coordinates the approval workflow services.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.controllers.base_controller import BaseController
from teamreview.db.transactions import TransactionPolicy
from teamreview.models.user import User
from teamreview.schemas.approval import (
    ApprovalHistoryListResponse,
    ApprovalLedgerResponse,
    ApprovalResponse,
    BulkOperationResponse,
    FreezeProjectWeekResponse,
    ProjectWeekResponse,
    TimesheetStatusResponse,
)
from teamreview.services.finalizer_service import FinalizerService
from teamreview.services.ledger_service import LedgerService
from teamreview.services.project_week_service import ProjectWeekService
from teamreview.services.team_review_approval_service import TeamReviewApprovalService


class TeamReviewController(BaseController):
    """Controller for approval workflow operations."""

    def __init__(self, session: AsyncSession, transactions: TransactionPolicy):
        self.approval_service = TeamReviewApprovalService(session, transactions)
        self.project_week_service = ProjectWeekService(session, transactions)
        self.finalizer_service = FinalizerService(session, transactions)
        self.ledger_service = LedgerService(session, transactions)

    async def submit_timesheet(self, timesheet_id: UUID, actor: User) -> TimesheetStatusResponse:
        return await self.ledger_service.submit_timesheet(timesheet_id, actor.id)

    async def approve_timesheet(
        self,
        timesheet_id: UUID,
        project_id: UUID,
        actor: User,
    ) -> ApprovalResponse:
        return await self.approval_service.approve_timesheet_for_project(
            timesheet_id, project_id, *self.actor_identity(actor)
        )

    async def reject_timesheet(
        self,
        timesheet_id: UUID,
        project_id: UUID,
        reason: str,
        actor: User,
    ) -> ApprovalResponse:
        return await self.approval_service.reject_timesheet_for_project(
            timesheet_id, project_id, *self.actor_identity(actor), reason
        )

    async def approve_project_week(
        self,
        project_id: UUID,
        week_start: date,
        week_end: date,
        actor: User,
    ) -> ProjectWeekResponse:
        return await self.project_week_service.approve_project_week(
            project_id, week_start, week_end, *self.actor_identity(actor)
        )

    async def reject_project_week(
        self,
        project_id: UUID,
        week_start: date,
        week_end: date,
        reason: str,
        actor: User,
    ) -> ProjectWeekResponse:
        return await self.project_week_service.reject_project_week(
            project_id, week_start, week_end, *self.actor_identity(actor), reason
        )

    async def freeze_project_week(
        self,
        project_id: UUID,
        week_start: date,
        week_end: date,
        actor: User,
    ) -> FreezeProjectWeekResponse:
        return await self.project_week_service.freeze_project_week(
            project_id, week_start, week_end, *self.actor_identity(actor)
        )

    async def mark_billed(
        self,
        timesheet_id: UUID,
        actor: User,
        billing_snapshot_id: Optional[UUID] = None,
    ) -> TimesheetStatusResponse:
        biller_id, biller_role = self.actor_identity(actor)
        return await self.finalizer_service.mark_timesheet_billed(
            timesheet_id, biller_id, billing_snapshot_id, biller_role
        )

    async def bulk_verify(self, timesheet_ids: List[UUID], actor: User) -> BulkOperationResponse:
        return await self.finalizer_service.bulk_verify(timesheet_ids, *self.actor_identity(actor))

    async def bulk_bill(self, timesheet_ids: List[UUID], actor: User) -> BulkOperationResponse:
        return await self.finalizer_service.bulk_bill(timesheet_ids, *self.actor_identity(actor))

    async def get_approval_ledger(self, timesheet_id: UUID) -> ApprovalLedgerResponse:
        return await self.ledger_service.get_approval_ledger(timesheet_id)

    async def list_history(self, timesheet_id: UUID) -> ApprovalHistoryListResponse:
        return await self.ledger_service.list_history(timesheet_id)
