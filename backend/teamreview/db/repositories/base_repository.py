"""
Base repository class with common operations.
Repositories handle database access using async SQLAlchemy sessions.
"""

from typing import Generic, Iterable, TypeVar, Type, Optional, Dict
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from teamreview.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository for models keyed by a UUID ``id`` column."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Model attributes

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get(self, id: UUID) -> Optional[ModelType]:
        """
        Get a record by ID.

        Args:
            id: Record ID

        Returns:
            Model instance or None
        """
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_many(self, ids: Iterable[UUID]) -> Dict[UUID, ModelType]:
        """Fetch several records at once, keyed by ID."""
        ids = list(set(ids))
        if not ids:
            return {}
        result = await self.session.execute(
            select(self.model).where(self.model.id.in_(ids))
        )
        return {row.id: row for row in result.scalars().all()}
