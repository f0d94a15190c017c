"""
Finalizer service - verification and billing of approved timesheets.
"""

import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.core.exceptions import AppException, InvalidTransitionError, NotFoundError
from teamreview.db.repositories.approval_history_repository import ApprovalHistoryRepository
from teamreview.db.repositories.project_approval_repository import ProjectApprovalRepository
from teamreview.db.repositories.timesheet_repository import TimesheetRepository
from teamreview.db.repositories.user_repository import UserRepository
from teamreview.db.transactions import TransactionPolicy
from teamreview.models.approval import ApprovalAction, ApprovalTier, ApproverRole
from teamreview.models.timesheet import Timesheet, TimesheetStatus
from teamreview.models.user import UserRole
from teamreview.schemas.approval import BulkOperationResponse, TimesheetStatusResponse
from teamreview.services import approval_rules as rules
from teamreview.services.base_service import BaseService
from teamreview.utils.dates import utc_now

logger = logging.getLogger(__name__)


class FinalizerService(BaseService):
    """Service for bulk verification and billing."""

    def __init__(self, session: AsyncSession, transactions: TransactionPolicy):
        super().__init__(session, transactions)
        self.timesheet_repo = TimesheetRepository(session)
        self.approval_repo = ProjectApprovalRepository(session)
        self.history_repo = ApprovalHistoryRepository(session)
        self.user_repo = UserRepository(session)

    async def mark_timesheet_billed(
        self,
        timesheet_id: UUID,
        biller_id: UUID,
        billing_snapshot_id: Optional[UUID] = None,
        biller_role: str = ApproverRole.MANAGEMENT.value,
    ) -> TimesheetStatusResponse:
        """Move a frozen timesheet to billed."""
        biller_role = rules.require_finalizer_role(biller_role, "bill timesheets")
        async with self.transactions.unit_of_work(self.session):
            timesheet = await self._get_timesheet(timesheet_id)
            await self._bill(timesheet, biller_id, biller_role, billing_snapshot_id)
        return TimesheetStatusResponse.model_validate(timesheet)

    async def bulk_verify(
        self,
        timesheet_ids: Iterable[UUID],
        verifier_id: UUID,
        verifier_role: str = ApproverRole.MANAGEMENT.value,
    ) -> BulkOperationResponse:
        """Management-verify each timesheet independently; failures are counted, not raised."""
        verifier_role = rules.require_finalizer_role(verifier_role, "verify timesheets")
        processed_count, failed_count = 0, 0
        for timesheet_id in timesheet_ids:
            try:
                async with self.transactions.unit_of_work(self.session):
                    timesheet = await self._get_timesheet(timesheet_id)
                    await self._verify(timesheet, verifier_id, verifier_role)
                processed_count += 1
            except AppException as exc:
                failed_count += 1
                logger.error(
                    "Failed to verify timesheet",
                    extra={"timesheet_id": str(timesheet_id), "error": exc.message},
                )

        logger.info(
            "Bulk verification finished",
            extra={"processed_count": processed_count, "failed_count": failed_count},
        )
        return BulkOperationResponse(processed_count=processed_count, failed_count=failed_count)

    async def bulk_bill(
        self,
        timesheet_ids: Iterable[UUID],
        biller_id: UUID,
        biller_role: str = ApproverRole.MANAGEMENT.value,
    ) -> BulkOperationResponse:
        """Bill each timesheet independently; failures are counted, not raised."""
        biller_role = rules.require_finalizer_role(biller_role, "bill timesheets")
        processed_count, failed_count = 0, 0
        for timesheet_id in timesheet_ids:
            try:
                async with self.transactions.unit_of_work(self.session):
                    timesheet = await self._get_timesheet(timesheet_id)
                    await self._bill(timesheet, biller_id, biller_role)
                processed_count += 1
            except AppException as exc:
                failed_count += 1
                logger.error(
                    "Failed to bill timesheet",
                    extra={"timesheet_id": str(timesheet_id), "error": exc.message},
                )

        logger.info(
            "Bulk billing finished",
            extra={"processed_count": processed_count, "failed_count": failed_count},
        )
        return BulkOperationResponse(processed_count=processed_count, failed_count=failed_count)

    async def _get_timesheet(self, timesheet_id: UUID) -> Timesheet:
        timesheet = await self.timesheet_repo.get(timesheet_id, for_update=self.transactions.locks_rows)
        if not timesheet:
            raise NotFoundError("Timesheet not found", details={"timesheet_id": str(timesheet_id)})
        return timesheet

    async def _verify(self, timesheet: Timesheet, verifier_id: UUID, verifier_role: str) -> None:
        owner = await self.user_repo.get(timesheet.user_id)
        ctx = rules.TransitionContext(
            tier=ApprovalTier.MANAGEMENT,
            acting_role=verifier_role,
            owner_role=UserRole(owner.role) if owner else UserRole.EMPLOYEE,
            current_status=TimesheetStatus(timesheet.status),
        )
        rules.check_can_approve(ctx)

        now = utc_now()
        ledger = await self.approval_repo.list_by_timesheet(timesheet.id, for_update=self.transactions.locks_rows)
        for approval in ledger:
            rules.mark_approved(approval, ctx, now)
        await self.transactions.checkpoint(self.session)

        rules.stamp_frozen(timesheet, verifier_id, now)
        await self.transactions.checkpoint(self.session)

        await self.history_repo.create(
            timesheet_id=timesheet.id,
            project_id=None,
            user_id=timesheet.user_id,
            approver_id=verifier_id,
            approver_role=ctx.acting_role,
            action=ApprovalAction.APPROVED,
            status_before=ctx.current_status,
            status_after=TimesheetStatus.FROZEN,
            notes="Bulk verification",
        )
        await self.transactions.checkpoint(self.session)

    async def _bill(
        self,
        timesheet: Timesheet,
        biller_id: UUID,
        biller_role: str,
        billing_snapshot_id: Optional[UUID] = None,
    ) -> None:
        current = TimesheetStatus(timesheet.status)
        if current == TimesheetStatus.BILLED:
            raise InvalidTransitionError(
                "Timesheet is already billed",
                current_status=current.value,
                required_status=[TimesheetStatus.FROZEN.value],
                acting_role=biller_role,
            )
        if current != TimesheetStatus.FROZEN:
            raise InvalidTransitionError(
                "Only frozen timesheets can be billed",
                current_status=current.value,
                required_status=[TimesheetStatus.FROZEN.value],
                acting_role=biller_role,
            )

        timesheet.status = TimesheetStatus.BILLED
        timesheet.billed_at = utc_now()
        if billing_snapshot_id is not None:
            timesheet.billing_snapshot_id = billing_snapshot_id
        await self.transactions.checkpoint(self.session)

        await self.history_repo.create(
            timesheet_id=timesheet.id,
            project_id=None,
            user_id=timesheet.user_id,
            approver_id=biller_id,
            approver_role=biller_role,
            action=ApprovalAction.BILLED,
            status_before=current,
            status_after=TimesheetStatus.BILLED,
            notes=f"Billing snapshot {billing_snapshot_id}" if billing_snapshot_id else None,
        )
        await self.transactions.checkpoint(self.session)

        logger.info(
            "Timesheet billed",
            extra={"timesheet_id": str(timesheet.id), "billing_snapshot_id": str(billing_snapshot_id)},
        )
