"""
Ledger service - opens the approval ledger on submission and serves the
read side of the workflow (ledger and audit trail).
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.core.exceptions import InvalidTransitionError, NotFoundError
from teamreview.db.repositories.approval_history_repository import ApprovalHistoryRepository
from teamreview.db.repositories.project_approval_repository import ProjectApprovalRepository
from teamreview.db.repositories.project_repository import ProjectRepository
from teamreview.db.repositories.time_entry_repository import TimeEntryRepository
from teamreview.db.repositories.timesheet_repository import TimesheetRepository
from teamreview.db.repositories.user_repository import UserRepository
from teamreview.db.transactions import TransactionPolicy
from teamreview.models.approval import ApprovalAction, ApprovalTier
from teamreview.models.timesheet import Timesheet, TimesheetStatus
from teamreview.models.user import UserRole
from teamreview.schemas.approval import (
    ApprovalHistoryListResponse,
    ApprovalHistoryResponse,
    ApprovalLedgerResponse,
    ProjectApprovalResponse,
    TimesheetStatusResponse,
)
from teamreview.services import approval_rules as rules
from teamreview.services.base_service import BaseService
from teamreview.utils.dates import utc_now

logger = logging.getLogger(__name__)

SUBMITTABLE_STATUSES = {
    TimesheetStatus.DRAFT,
    TimesheetStatus.LEAD_REJECTED,
    TimesheetStatus.MANAGER_REJECTED,
    TimesheetStatus.MANAGEMENT_REJECTED,
}


class LedgerService(BaseService):
    """Service for timesheet submission and ledger reads."""

    def __init__(self, session: AsyncSession, transactions: TransactionPolicy):
        super().__init__(session, transactions)
        self.timesheet_repo = TimesheetRepository(session)
        self.entry_repo = TimeEntryRepository(session)
        self.approval_repo = ProjectApprovalRepository(session)
        self.history_repo = ApprovalHistoryRepository(session)
        self.project_repo = ProjectRepository(session)
        self.user_repo = UserRepository(session)

    async def submit_timesheet(self, timesheet_id: UUID, submitter_id: UUID) -> TimesheetStatusResponse:
        """
        Submit (or resubmit) a timesheet for approval.

        One ledger entry per project with hours is opened, or reset to its
        baseline when it already exists. Entries for projects that no longer
        have hours are kept but no longer require anything.
        """
        async with self.transactions.unit_of_work(self.session):
            locks = self.transactions.locks_rows
            timesheet = await self.timesheet_repo.get(timesheet_id, for_update=locks)
            if not timesheet:
                raise NotFoundError("Timesheet not found", details={"timesheet_id": str(timesheet_id)})

            status_before = TimesheetStatus(timesheet.status)
            if status_before not in SUBMITTABLE_STATUSES:
                raise InvalidTransitionError(
                    f"Cannot submit timesheet with status {status_before.value}",
                    current_status=status_before.value,
                    required_status=[s.value for s in SUBMITTABLE_STATUSES],
                    acting_role=UserRole.EMPLOYEE.value,
                )

            slices = await self.entry_repo.summarize_by_project(timesheet_id)
            total_hours = sum((s.total_hours for s in slices), Decimal("0"))
            if total_hours <= 0:
                raise InvalidTransitionError(
                    "Cannot submit a timesheet without hours",
                    current_status=status_before.value,
                    acting_role=UserRole.EMPLOYEE.value,
                )

            owner = await self.user_repo.get(timesheet.user_id)
            owner_role = UserRole(owner.role) if owner else UserRole.EMPLOYEE
            projects = await self.project_repo.get_many(s.project_id for s in slices)
            existing = {a.project_id: a for a in await self.approval_repo.list_by_timesheet(timesheet_id, for_update=locks)}

            for hours in slices:
                project = projects.get(hours.project_id)
                if project is None:
                    raise NotFoundError("Project not found", details={"project_id": str(hours.project_id)})

                approval = existing.pop(hours.project_id, None)
                if approval is None:
                    baseline = rules.initial_tier_statuses(owner_role, project.lead_id, project.primary_manager_id)
                    await self.approval_repo.create(
                        timesheet_id=timesheet_id,
                        project_id=project.id,
                        lead_id=project.lead_id,
                        manager_id=project.primary_manager_id,
                        lead_status=baseline[ApprovalTier.LEAD],
                        manager_status=baseline[ApprovalTier.MANAGER],
                        management_status=baseline[ApprovalTier.MANAGEMENT],
                        entries_count=hours.entries_count,
                        total_hours=hours.total_hours,
                    )
                else:
                    approval.lead_id = project.lead_id
                    approval.manager_id = project.primary_manager_id
                    approval.entries_count = hours.entries_count
                    approval.total_hours = hours.total_hours
                    rules.reinitialize(approval, owner_role)

            for stale in existing.values():
                stale.entries_count = 0
                stale.total_hours = Decimal("0")
                rules.mark_not_required(stale)
            await self.transactions.checkpoint(self.session)

            self._clear_review_stamps(timesheet)
            timesheet.status = TimesheetStatus.SUBMITTED
            timesheet.submitted_at = utc_now()
            timesheet.total_hours = total_hours
            await self.transactions.checkpoint(self.session)

            await self.history_repo.create(
                timesheet_id=timesheet.id,
                project_id=None,
                user_id=timesheet.user_id,
                approver_id=submitter_id,
                approver_role=owner_role.value,
                action=ApprovalAction.SUBMITTED,
                status_before=status_before,
                status_after=TimesheetStatus.SUBMITTED,
            )
            await self.transactions.checkpoint(self.session)

        logger.info(
            "Timesheet submitted",
            extra={
                "timesheet_id": str(timesheet_id),
                "projects": len(slices),
                "total_hours": str(total_hours),
                "resubmission": status_before != TimesheetStatus.DRAFT,
            },
        )
        return TimesheetStatusResponse.model_validate(timesheet)

    async def get_approval_ledger(self, timesheet_id: UUID) -> ApprovalLedgerResponse:
        timesheet = await self.timesheet_repo.get(timesheet_id)
        if not timesheet:
            raise NotFoundError("Timesheet not found", details={"timesheet_id": str(timesheet_id)})
        approvals = await self.approval_repo.list_by_timesheet(timesheet_id)
        return ApprovalLedgerResponse(
            timesheet_id=timesheet.id,
            status=timesheet.status,
            is_frozen=timesheet.is_frozen,
            approvals=[ProjectApprovalResponse.model_validate(a) for a in approvals],
        )

    async def list_history(self, timesheet_id: UUID) -> ApprovalHistoryListResponse:
        timesheet = await self.timesheet_repo.get(timesheet_id)
        if not timesheet:
            raise NotFoundError("Timesheet not found", details={"timesheet_id": str(timesheet_id)})
        rows = await self.history_repo.list_by_timesheet(timesheet_id)
        return ApprovalHistoryListResponse(
            items=[ApprovalHistoryResponse.model_validate(r) for r in rows],
            total=len(rows),
        )

    @staticmethod
    def _clear_review_stamps(timesheet: Timesheet) -> None:
        for tier in ApprovalTier:
            setattr(timesheet, f"approved_by_{tier.value}_id", None)
            setattr(timesheet, f"approved_by_{tier.value}_at", None)
        timesheet.verified_by_id = None
        timesheet.verified_at = None
        timesheet.is_verified = False
        timesheet.is_frozen = False
