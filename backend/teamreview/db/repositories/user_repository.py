"""
User repository for role lookups.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.db.repositories.base_repository import BaseRepository
from teamreview.models.user import User


class UserRepository(BaseRepository[User]):
    """Repository for user lookups."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)
