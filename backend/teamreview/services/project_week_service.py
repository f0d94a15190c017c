"""
Project-week service - approve, reject or freeze every timesheet of one project
for a week range in a single call.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.core.exceptions import AppException, InvalidTransitionError, NotFoundError
from teamreview.db.repositories.project_approval_repository import ProjectApprovalRepository
from teamreview.db.repositories.project_repository import ProjectRepository
from teamreview.db.repositories.timesheet_repository import TimesheetRepository
from teamreview.db.repositories.user_repository import UserRepository
from teamreview.db.transactions import TransactionPolicy
from teamreview.models.approval import ApprovalTier, ApproverRole, ProjectApproval
from teamreview.models.project import Project
from teamreview.models.timesheet import Timesheet, TimesheetStatus
from teamreview.models.user import User
from teamreview.schemas.approval import (
    BulkItemResult,
    FreezeProjectWeekResponse,
    ProjectWeekInfo,
    ProjectWeekResponse,
)
from teamreview.services import approval_rules as rules
from teamreview.services.base_service import BaseService
from teamreview.services.team_review_approval_service import ReviewScope, TeamReviewApprovalService
from teamreview.utils.dates import format_week_label

logger = logging.getLogger(__name__)

BULK_APPROVAL_NOTE = "Bulk project-week approval"
BULK_REJECTION_NOTE = "Bulk project-week rejection"
BULK_FREEZE_NOTE = "Bulk project-week freeze"


@dataclass
class ProjectWeekBatch:
    project: Project
    timesheets: Dict[UUID, Timesheet]
    approvals: List[ProjectApproval]
    owners: Dict[UUID, User]

    def owner_name(self, timesheet: Timesheet) -> str:
        owner = self.owners.get(timesheet.user_id)
        return owner.full_name if owner else "Unknown"


class ProjectWeekService(BaseService):
    """Service for bulk project-week operations."""

    def __init__(self, session: AsyncSession, transactions: TransactionPolicy):
        super().__init__(session, transactions)
        self.approval_service = TeamReviewApprovalService(session, transactions)
        self.timesheet_repo = TimesheetRepository(session)
        self.approval_repo = ProjectApprovalRepository(session)
        self.project_repo = ProjectRepository(session)
        self.user_repo = UserRepository(session)

    async def approve_project_week(
        self,
        project_id: UUID,
        week_start: date,
        week_end: date,
        approver_id: UUID,
        approver_role: str,
    ) -> ProjectWeekResponse:
        """Approve the project's slice of every timesheet in the week range."""
        tier = rules.resolve_tier(approver_role)
        async with self.transactions.unit_of_work(self.session):
            batch = await self._load_batch(project_id, week_start, week_end)
            affected_users, affected_timesheets, skipped = set(), set(), []
            for approval in batch.approvals:
                timesheet = batch.timesheets[approval.timesheet_id]
                try:
                    scope = await self._scope_for(batch, approval)
                    await self.approval_service.apply_approval(
                        scope, tier, approver_id, approver_role, notes=BULK_APPROVAL_NOTE,
                    )
                except (InvalidTransitionError, NotFoundError) as exc:
                    logger.warning(
                        "Skipped timesheet in project-week",
                        extra={"timesheet_id": str(timesheet.id), "project_id": str(project_id), "reason": exc.message},
                    )
                    skipped.append(self._item(batch, timesheet, exc))
                    continue
                affected_users.add(timesheet.user_id)
                affected_timesheets.add(timesheet.id)

        week_label = format_week_label(week_start, week_end)
        logger.info(
            "Project-week approved",
            extra={
                "project_id": str(project_id),
                "week_label": week_label,
                "affected_timesheets": len(affected_timesheets),
                "skipped": len(skipped),
            },
        )
        return ProjectWeekResponse(
            success=True,
            message=f"Approved {len(affected_timesheets)} timesheet(s) for {batch.project.name} - {week_label}",
            affected_users=len(affected_users),
            affected_timesheets=len(affected_timesheets),
            project_week=ProjectWeekInfo(project_name=batch.project.name, week_label=week_label),
            skipped=skipped,
        )

    async def reject_project_week(
        self,
        project_id: UUID,
        week_start: date,
        week_end: date,
        approver_id: UUID,
        approver_role: str,
        reason: str,
    ) -> ProjectWeekResponse:
        """Reject the project's slice of every timesheet in the week range."""
        reason = rules.require_reason(reason)
        tier = rules.resolve_tier(approver_role)
        async with self.transactions.unit_of_work(self.session):
            batch = await self._load_batch(project_id, week_start, week_end)
            affected_users, affected_timesheets, skipped = set(), set(), []
            for approval in batch.approvals:
                timesheet = batch.timesheets[approval.timesheet_id]
                try:
                    scope = await self._scope_for(batch, approval)
                    await self.approval_service.apply_rejection(
                        scope, tier, approver_id, approver_role, reason, notes=BULK_REJECTION_NOTE,
                    )
                except (InvalidTransitionError, NotFoundError) as exc:
                    logger.warning(
                        "Skipped timesheet in project-week",
                        extra={"timesheet_id": str(timesheet.id), "project_id": str(project_id), "reason": exc.message},
                    )
                    skipped.append(self._item(batch, timesheet, exc))
                    continue
                affected_users.add(timesheet.user_id)
                affected_timesheets.add(timesheet.id)

        week_label = format_week_label(week_start, week_end)
        logger.info(
            "Project-week rejected",
            extra={
                "project_id": str(project_id),
                "week_label": week_label,
                "affected_timesheets": len(affected_timesheets),
                "skipped": len(skipped),
            },
        )
        return ProjectWeekResponse(
            success=True,
            message=f"Rejected {len(affected_timesheets)} timesheet(s) for {batch.project.name} - {week_label}",
            affected_users=len(affected_users),
            affected_timesheets=len(affected_timesheets),
            project_week=ProjectWeekInfo(project_name=batch.project.name, week_label=week_label),
            skipped=skipped,
        )

    async def freeze_project_week(
        self,
        project_id: UUID,
        week_start: date,
        week_end: date,
        approver_id: UUID,
        approver_role: str = ApproverRole.MANAGEMENT.value,
    ) -> FreezeProjectWeekResponse:
        """
        Management sign-off for every timesheet of the project-week.

        Refuses the whole batch, before any write, while any timesheet in scope
        is still contested. Frozen or billed timesheets are skipped.
        """
        role_value = rules.require_finalizer_role(approver_role, "freeze a project-week")

        async with self.transactions.unit_of_work(self.session):
            batch = await self._load_batch(project_id, week_start, week_end)

            contested = [
                batch.timesheets[a.timesheet_id]
                for a in batch.approvals
                if TimesheetStatus(batch.timesheets[a.timesheet_id].status) in rules.CONTESTED_STATUSES
            ]
            if contested:
                names = sorted({batch.owner_name(ts) for ts in contested})
                raise InvalidTransitionError(
                    f"Cannot freeze project-week: {len(contested)} timesheet(s) still pending approval "
                    f"({', '.join(names)})",
                    acting_role=role_value,
                    details={
                        "pending_users": names,
                        "pending_timesheets": [str(ts.id) for ts in contested],
                    },
                )

            frozen_count, skipped_count, failed = 0, 0, []
            for approval in batch.approvals:
                timesheet = batch.timesheets[approval.timesheet_id]
                if TimesheetStatus(timesheet.status) in rules.TERMINAL_STATUSES:
                    skipped_count += 1
                    continue
                try:
                    scope = await self._scope_for(batch, approval)
                    await self.approval_service.apply_approval(
                        scope, ApprovalTier.MANAGEMENT, approver_id, role_value, notes=BULK_FREEZE_NOTE,
                    )
                except (InvalidTransitionError, NotFoundError) as exc:
                    logger.error(
                        "Failed to freeze timesheet",
                        extra={"timesheet_id": str(timesheet.id), "error": exc.message},
                    )
                    failed.append(self._item(batch, timesheet, exc))
                    continue
                frozen_count += 1

        week_label = format_week_label(week_start, week_end)
        logger.info(
            "Project-week frozen",
            extra={
                "project_id": str(project_id),
                "week_label": week_label,
                "frozen_count": frozen_count,
                "skipped_count": skipped_count,
                "failed_count": len(failed),
            },
        )
        return FreezeProjectWeekResponse(
            success=True,
            message=f"Successfully frozen {frozen_count} timesheet(s) for {batch.project.name} - {week_label}",
            frozen_count=frozen_count,
            skipped_count=skipped_count,
            failed=failed,
            project_week=ProjectWeekInfo(project_name=batch.project.name, week_label=week_label),
        )

    async def _load_batch(self, project_id: UUID, week_start: date, week_end: date) -> ProjectWeekBatch:
        project = await self.project_repo.get(project_id)
        if not project:
            raise NotFoundError("Project not found", details={"project_id": str(project_id)})

        locks = self.transactions.locks_rows
        timesheets = await self.timesheet_repo.list_in_week_range(
            week_start, week_end, project_id=project_id, for_update=locks,
        )
        if not timesheets and not await self.timesheet_repo.exists_in_week_range(week_start, week_end):
            raise NotFoundError(
                "No timesheets found for this week",
                details={"week_start": week_start.isoformat(), "week_end": week_end.isoformat()},
            )

        approvals = await self.approval_repo.list_for_project(
            project_id, [ts.id for ts in timesheets], for_update=locks,
        )
        if not approvals:
            raise NotFoundError(
                "No approval records found for this project-week",
                details={"project_id": str(project_id), "week_start": week_start.isoformat()},
            )

        by_id = {ts.id: ts for ts in timesheets}
        owners = await self.user_repo.get_many({by_id[a.timesheet_id].user_id for a in approvals})
        return ProjectWeekBatch(project=project, timesheets=by_id, approvals=approvals, owners=owners)

    async def _scope_for(self, batch: ProjectWeekBatch, approval: ProjectApproval) -> ReviewScope:
        timesheet = batch.timesheets[approval.timesheet_id]
        ledger = await self.approval_repo.list_by_timesheet(timesheet.id, for_update=self.transactions.locks_rows)
        return ReviewScope(
            timesheet=timesheet,
            ledger=ledger,
            approval=approval,
            project=batch.project,
            owner=batch.owners.get(timesheet.user_id),
        )

    @staticmethod
    def _item(batch: ProjectWeekBatch, timesheet: Timesheet, exc: AppException) -> BulkItemResult:
        return BulkItemResult(
            user_id=timesheet.user_id,
            user_name=batch.owner_name(timesheet),
            reason=exc.message,
        )
