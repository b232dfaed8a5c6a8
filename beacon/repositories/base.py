"""
Base Repository Pattern with SQLAlchemy

Provides common async CRUD operations for all repositories.
"""
from datetime import date, datetime
from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from beacon.database.models.base import Base


# Generic type for model classes
ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Base repository with common async database operations.

    Subclasses set the `model` class attribute to their SQLAlchemy model.

    Example:
        class ScoreRepository(BaseRepository[ScoreRecord]):
            model = ScoreRecord
    """

    model: Type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get(self, primary_key: Any) -> Optional[ModelT]:
        """
        Get entity by primary key.

        Args:
            primary_key: Scalar key, or a tuple for composite keys

        Returns:
            Entity or None if not found
        """
        return await self.session.get(self.model, primary_key)

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self.model)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    # ============================================
    # WRITE OPERATIONS
    # ============================================

    async def add(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        return entity

    # ============================================
    # UTILITY METHODS
    # ============================================

    @staticmethod
    def now() -> datetime:
        return datetime.now()

    @staticmethod
    def today() -> date:
        return date.today()

    async def _scalars(self, stmt) -> Sequence[ModelT]:
        result = await self.session.execute(stmt)
        return result.scalars().all()
