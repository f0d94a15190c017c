"""
Timesheet repository for database operations.
"""

from typing import Optional, List
from uuid import UUID
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import exists, select

from teamreview.db.repositories.base_repository import BaseRepository
from teamreview.models.approval import ProjectApproval
from teamreview.models.timesheet import Timesheet


class TimesheetRepository(BaseRepository[Timesheet]):
    """Repository for timesheet operations. Soft-deleted rows are never returned."""

    def __init__(self, session: AsyncSession):
        super().__init__(Timesheet, session)

    async def get(self, id: UUID, for_update: bool = False) -> Optional[Timesheet]:
        """Get a live timesheet by ID, optionally locking the row."""
        query = select(Timesheet).where(
            Timesheet.id == id,
            Timesheet.deleted_at.is_(None),
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    def _week_filter(self, week_start: date, week_end: date):
        return (
            Timesheet.week_start_date >= week_start,
            Timesheet.week_start_date <= week_end,
            Timesheet.deleted_at.is_(None),
        )

    async def exists_in_week_range(self, week_start: date, week_end: date) -> bool:
        """Whether any live timesheet starts within [week_start, week_end]. Takes no locks."""
        result = await self.session.execute(select(exists().where(*self._week_filter(week_start, week_end))))
        return bool(result.scalar())

    async def list_in_week_range(
        self,
        week_start: date,
        week_end: date,
        project_id: Optional[UUID] = None,
        for_update: bool = False,
    ) -> List[Timesheet]:
        """
        List live timesheets whose week starts within [week_start, week_end].

        With ``project_id`` only timesheets holding a ledger entry for that
        project are returned, so ``for_update`` locks nothing outside the batch.
        """
        query = select(Timesheet).where(*self._week_filter(week_start, week_end))
        if project_id is not None:
            query = query.where(
                Timesheet.id.in_(
                    select(ProjectApproval.timesheet_id).where(ProjectApproval.project_id == project_id)
                )
            )
        query = query.order_by(Timesheet.id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return list(result.scalars().all())
