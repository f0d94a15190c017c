"""
Project repository for reviewer and approval-settings lookups.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.db.repositories.base_repository import BaseRepository
from teamreview.models.project import Project


class ProjectRepository(BaseRepository[Project]):
    """Repository for project lookups."""

    def __init__(self, session: AsyncSession):
        super().__init__(Project, session)
