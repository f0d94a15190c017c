"""
Project approval (ledger) repository.

Rows are locked in (timesheet_id, project_id) order when ``for_update`` is set.
"""

from typing import Iterable, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from teamreview.models.approval import ProjectApproval


class ProjectApprovalRepository:
    """Repository for approval ledger entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> ProjectApproval:
        """Open a new ledger entry."""
        instance = ProjectApproval(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def get(
        self,
        timesheet_id: UUID,
        project_id: UUID,
        for_update: bool = False,
    ) -> Optional[ProjectApproval]:
        """Get the ledger entry for one (timesheet, project) pair."""
        query = select(ProjectApproval).where(
            ProjectApproval.timesheet_id == timesheet_id,
            ProjectApproval.project_id == project_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_timesheet(self, timesheet_id: UUID, for_update: bool = False) -> List[ProjectApproval]:
        """All ledger entries of one timesheet."""
        query = (
            select(ProjectApproval)
            .where(ProjectApproval.timesheet_id == timesheet_id)
            .order_by(ProjectApproval.project_id)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_for_project(
        self,
        project_id: UUID,
        timesheet_ids: Iterable[UUID],
        for_update: bool = False,
    ) -> List[ProjectApproval]:
        """Ledger entries of one project across a set of timesheets."""
        timesheet_ids = list(timesheet_ids)
        if not timesheet_ids:
            return []
        query = (
            select(ProjectApproval)
            .where(
                ProjectApproval.project_id == project_id,
                ProjectApproval.timesheet_id.in_(timesheet_ids),
            )
            .order_by(ProjectApproval.timesheet_id)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return list(result.scalars().all())
