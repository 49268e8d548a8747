"""
Base Repository Pattern

Purpose
-------
Type-safe generic repository over SQLAlchemy 2.0 async sessions. Repositories
own query construction and nothing else.

Design Notes
------------
- Transaction discipline: callers pass the session; repositories never commit
- ``for_update`` issues SELECT ... FOR UPDATE (a no-op on SQLite, where the
  coordinator's per-player lock provides the serialization instead)
- Every operation logs at debug with the model name

Usage
-----
    class SessionRepository(BaseRepository[AccrualSessionRecord]):
        async def find_active(self, session, player_id):
            return await self.find_one_where(
                session,
                AccrualSessionRecord.player_id == player_id,
                AccrualSessionRecord.status == SessionStatus.ACTIVE,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        for_update: bool = False,
    ) -> Optional[T]:
        """Get a single record by primary key, optionally row-locked."""
        stmt = select(self.model_class).where(self.model_class.id == id_value)  # type: ignore[attr-defined]
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering clauses
            limit: Optional maximum number of results
            offset: Optional number of rows to skip

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
                "offset": offset,
            },
        )
        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )
        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return instance

    async def flush(self, session: AsyncSession) -> None:
        """
        Flush pending changes.

        Constraint violations (unique index, check constraints) surface here
        as ``IntegrityError``; callers translate them.
        """
        await session.flush()
        self.log.debug(
            f"Repository.flush: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
