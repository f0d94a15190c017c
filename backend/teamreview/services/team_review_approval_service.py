"""
Team review approval service - approve and reject one project's slice of a timesheet.

``apply_approval`` and ``apply_rejection`` are the shared write paths; the
project-week service runs them once per ledger entry inside its own unit of work.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.core.exceptions import NotFoundError
from teamreview.db.repositories.approval_history_repository import ApprovalHistoryRepository
from teamreview.db.repositories.project_approval_repository import ProjectApprovalRepository
from teamreview.db.repositories.project_repository import ProjectRepository
from teamreview.db.repositories.timesheet_repository import TimesheetRepository
from teamreview.db.repositories.user_repository import UserRepository
from teamreview.db.transactions import TransactionPolicy
from teamreview.models.approval import ApprovalAction, ApprovalTier, ProjectApproval, TierStatus
from teamreview.models.project import Project
from teamreview.models.timesheet import Timesheet, TimesheetStatus
from teamreview.models.user import User, UserRole
from teamreview.schemas.approval import ApprovalResponse
from teamreview.services import approval_rules as rules
from teamreview.services.base_service import BaseService
from teamreview.utils.dates import utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReviewScope:
    """A ledger entry together with everything needed to act on it."""
    timesheet: Timesheet
    ledger: List[ProjectApproval]
    approval: ProjectApproval
    project: Project
    owner: Optional[User] = None

    @property
    def owner_role(self) -> UserRole:
        if self.owner is None:
            return UserRole.EMPLOYEE
        return UserRole(self.owner.role)


@dataclass
class ApprovalOutcome:
    status_before: TimesheetStatus
    status_after: TimesheetStatus

    @property
    def status_changed(self) -> bool:
        return self.status_before != self.status_after


def _role_value(role) -> str:
    return getattr(role, "value", role)


class TeamReviewApprovalService(BaseService):
    """Service for single-record approval operations."""

    def __init__(self, session: AsyncSession, transactions: TransactionPolicy):
        super().__init__(session, transactions)
        self.timesheet_repo = TimesheetRepository(session)
        self.approval_repo = ProjectApprovalRepository(session)
        self.history_repo = ApprovalHistoryRepository(session)
        self.project_repo = ProjectRepository(session)
        self.user_repo = UserRepository(session)

    async def approve_timesheet_for_project(
        self,
        timesheet_id: UUID,
        project_id: UUID,
        approver_id: UUID,
        approver_role: str,
    ) -> ApprovalResponse:
        """Approve one project's slice at the approver's tier and re-derive the status."""
        tier = rules.resolve_tier(approver_role)
        async with self.transactions.unit_of_work(self.session):
            scope = await self.load_scope(timesheet_id, project_id)
            outcome = await self.apply_approval(scope, tier, approver_id, approver_role)

        if outcome.status_changed:
            message = "Timesheet approved and status updated"
        else:
            message = "Project approved, waiting for other approvers"
        return ApprovalResponse(
            success=True,
            message=message,
            all_approved=outcome.status_changed,
            new_status=outcome.status_after.value,
        )

    async def reject_timesheet_for_project(
        self,
        timesheet_id: UUID,
        project_id: UUID,
        approver_id: UUID,
        approver_role: str,
        reason: str,
    ) -> ApprovalResponse:
        """Reject one project's slice; every other project goes back to its baseline."""
        reason = rules.require_reason(reason)
        tier = rules.resolve_tier(approver_role)
        async with self.transactions.unit_of_work(self.session):
            scope = await self.load_scope(timesheet_id, project_id)
            outcome = await self.apply_rejection(scope, tier, approver_id, approver_role, reason)

        return ApprovalResponse(
            success=True,
            message="Timesheet rejected",
            all_approved=False,
            new_status=outcome.status_after.value,
        )

    async def load_scope(self, timesheet_id: UUID, project_id: UUID) -> ReviewScope:
        """Read the timesheet and its ledger, locking rows when the policy does."""
        locks = self.transactions.locks_rows
        timesheet = await self.timesheet_repo.get(timesheet_id, for_update=locks)
        if not timesheet:
            raise NotFoundError("Timesheet not found", details={"timesheet_id": str(timesheet_id)})

        ledger = await self.approval_repo.list_by_timesheet(timesheet_id, for_update=locks)
        approval = next((a for a in ledger if a.project_id == project_id), None)
        if approval is None:
            raise NotFoundError(
                "Project approval record not found",
                details={"timesheet_id": str(timesheet_id), "project_id": str(project_id)},
            )

        project = await self.project_repo.get(project_id)
        if not project:
            raise NotFoundError("Project not found", details={"project_id": str(project_id)})

        owner = await self.user_repo.get(timesheet.user_id)
        return ReviewScope(timesheet=timesheet, ledger=ledger, approval=approval, project=project, owner=owner)

    def _context(self, scope: ReviewScope, tier: ApprovalTier, acting_role) -> rules.TransitionContext:
        return rules.TransitionContext(
            tier=tier,
            acting_role=_role_value(acting_role),
            owner_role=scope.owner_role,
            current_status=TimesheetStatus(scope.timesheet.status),
            auto_escalates=scope.project.lead_approval_auto_escalates,
            tier_status=TierStatus(scope.approval.tier_status(tier)),
        )

    async def apply_approval(
        self,
        scope: ReviewScope,
        tier: ApprovalTier,
        approver_id: UUID,
        acting_role,
        notes: Optional[str] = None,
    ) -> ApprovalOutcome:
        """Guard, mark the ledger entry, re-derive the status and append history."""
        ctx = self._context(scope, tier, acting_role)
        rules.check_can_approve(ctx)

        now = utc_now()
        mark = rules.mark_approved(scope.approval, ctx, now)
        await self.transactions.checkpoint(self.session)

        new_status = rules.status_after_approval(scope.ledger, ctx)
        rules.stamp_approval(scope.timesheet, tier, new_status, approver_id, now)
        await self.transactions.checkpoint(self.session)

        if mark.lead_bypassed:
            logger.info(
                "Lead review bypassed by manager",
                extra={
                    "timesheet_id": str(scope.timesheet.id),
                    "project_id": str(scope.approval.project_id),
                    "approver_id": str(approver_id),
                },
            )

        await self.history_repo.create(
            timesheet_id=scope.timesheet.id,
            project_id=scope.approval.project_id,
            user_id=scope.timesheet.user_id,
            approver_id=approver_id,
            approver_role=ctx.acting_role,
            action=ApprovalAction.APPROVED,
            status_before=ctx.current_status,
            status_after=scope.timesheet.status,
            notes="; ".join([n for n in [notes, *mark.notes] if n]) or None,
        )
        await self.transactions.checkpoint(self.session)

        logger.info(
            "Timesheet project approved",
            extra={
                "timesheet_id": str(scope.timesheet.id),
                "project_id": str(scope.approval.project_id),
                "tier": tier.value,
                "status_before": ctx.current_status.value,
                "status_after": TimesheetStatus(scope.timesheet.status).value,
            },
        )
        return ApprovalOutcome(
            status_before=ctx.current_status,
            status_after=TimesheetStatus(scope.timesheet.status),
        )

    async def apply_rejection(
        self,
        scope: ReviewScope,
        tier: ApprovalTier,
        approver_id: UUID,
        acting_role,
        reason: str,
        notes: Optional[str] = None,
    ) -> ApprovalOutcome:
        """Guard, reject the entry, reset the rest of the ledger and append history."""
        ctx = self._context(scope, tier, acting_role)
        rules.check_can_reject(ctx)

        now = utc_now()
        rules.mark_rejected(scope.approval, tier, reason)
        reset = rules.reset_other_approvals(scope.ledger, scope.approval.project_id, ctx.owner_role)
        await self.transactions.checkpoint(self.session)

        rules.stamp_rejection(scope.timesheet, tier, reason, now)
        await self.transactions.checkpoint(self.session)

        await self.history_repo.create(
            timesheet_id=scope.timesheet.id,
            project_id=scope.approval.project_id,
            user_id=scope.timesheet.user_id,
            approver_id=approver_id,
            approver_role=ctx.acting_role,
            action=ApprovalAction.REJECTED,
            status_before=ctx.current_status,
            status_after=scope.timesheet.status,
            reason=reason,
            notes=notes,
        )
        await self.transactions.checkpoint(self.session)

        logger.info(
            "Timesheet project rejected",
            extra={
                "timesheet_id": str(scope.timesheet.id),
                "project_id": str(scope.approval.project_id),
                "tier": tier.value,
                "reset_count": len(reset),
            },
        )
        return ApprovalOutcome(
            status_before=ctx.current_status,
            status_after=TimesheetStatus(scope.timesheet.status),
        )
