"""
Time entry repository.
"""

from decimal import Decimal
from typing import List, NamedTuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from teamreview.db.repositories.base_repository import BaseRepository
from teamreview.models.time_entry import TimeEntry


class ProjectHours(NamedTuple):
    project_id: UUID
    entries_count: int
    total_hours: Decimal


class TimeEntryRepository(BaseRepository[TimeEntry]):
    """Repository for time entry queries."""

    def __init__(self, session: AsyncSession):
        super().__init__(TimeEntry, session)

    async def summarize_by_project(self, timesheet_id: UUID) -> List[ProjectHours]:
        """Entry count and hours per project for one timesheet."""
        result = await self.session.execute(
            select(
                TimeEntry.project_id,
                func.count(TimeEntry.id),
                func.coalesce(func.sum(TimeEntry.hours), 0),
            )
            .where(TimeEntry.timesheet_id == timesheet_id)
            .group_by(TimeEntry.project_id)
        )
        return [
            ProjectHours(project_id, int(count), Decimal(str(hours)))
            for project_id, count, hours in result.all()
        ]
