"""
Health repository.
Checks database connectivity and that the approval ledger tables are reachable.
"""

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.models.approval import ApprovalHistory, ProjectApproval


class HealthRepository:
    """Repository for health check operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def check_database(self) -> bool:
        try:
            result = await self.session.execute(text("SELECT 1"))
            return result.scalar() == 1
        except SQLAlchemyError:
            return False

    async def check_ledger(self) -> bool:
        """
        Read a single row from the ledger and audit tables.

        Returns:
            True if both tables answer, False on any database error
        """
        try:
            for model in (ProjectApproval, ApprovalHistory):
                await self.session.execute(select(model).limit(1))
            return True
        except SQLAlchemyError:
            return False
