"""
Approval history repository. Append and read only.
"""

from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from teamreview.models.approval import ApprovalHistory


class ApprovalHistoryRepository:
    """Repository for the approval audit trail."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> ApprovalHistory:
        """Append a history entry."""
        instance = ApprovalHistory(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def list_by_timesheet(self, timesheet_id: UUID):
        """List history for a timesheet, oldest first."""
        result = await self.session.execute(
            select(ApprovalHistory)
            .where(ApprovalHistory.timesheet_id == timesheet_id)
            .order_by(ApprovalHistory.created_at, ApprovalHistory.id)
        )
        return list(result.scalars().all())
