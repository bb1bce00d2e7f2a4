"""
Base repository.

Generic read operations shared by all repositories.
"""

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from indexer.models.base import Base

# Generic type for model
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with generic operations.

    Type Parameters:
        ModelType: SQLAlchemy model class

    Example:
        class UserStatsRepository(BaseRepository[UserStats]):
            def __init__(self, session: AsyncSession):
                super().__init__(UserStats, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    @property
    def _pk(self):
        return self.model.__mapper__.primary_key[0]

    async def get_by_id(self, id: Any) -> ModelType | None:
        """
        Get entity by primary key.

        Args:
            id: Primary key value

        Returns:
            Entity or None if not found
        """
        return await self.session.get(self.model, id)

    async def get_many(
        self, ids: Iterable[Any], for_update: bool = False
    ) -> dict[Any, ModelType]:
        """
        Get entities by primary key.

        Args:
            ids: Primary key values
            for_update: Use SELECT FOR UPDATE to lock the rows

        Returns:
            Mapping of primary key to entity (missing keys omitted)
        """
        ids = list(ids)
        if not ids:
            return {}

        stmt = select(self.model).where(self._pk.in_(ids))
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        pk_name = self._pk.key
        return {getattr(row, pk_name): row for row in result.scalars().all()}

    async def find_all(
        self,
        limit: int | None = None,
        offset: int | None = None,
        **filters: Any,
    ) -> list[ModelType]:
        """
        Find all entities matching filters.

        Args:
            limit: Max number of results
            offset: Number of results to skip
            **filters: Column filters

        Returns:
            List of matching entities
        """
        stmt = select(self.model).filter_by(**filters).order_by(self._pk)

        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, **filters: Any) -> int:
        """
        Count entities matching filters.

        Args:
            **filters: Column filters

        Returns:
            Count of matching entities
        """
        stmt = select(func.count()).select_from(self.model)

        if filters:
            stmt = stmt.filter_by(**filters)

        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def exists(self, id: Any) -> bool:
        """
        Check if entity exists.

        Args:
            id: Primary key value

        Returns:
            True if exists, False otherwise
        """
        stmt = select(self._pk).where(self._pk == id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar() is not None

    async def delete_all(self) -> int:
        """
        Delete every row of the table.

        Returns:
            Number of deleted rows
        """
        result = await self.session.execute(delete(self.model))
        return result.rowcount or 0
