"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction over SQLAlchemy 2.0 async
sessions. Repositories encapsulate statement construction; the caller owns
the session and therefore the transaction.

Design Notes
------------
This base repository provides:
- Filtered single/multi-row reads with ordering and limits
- Conditional bulk UPDATE returning the matched row count, the building
  block for optimistic-concurrency writes
- Insert/flush helpers
- Structured debug logging for every statement

What this class does NOT do:
- Manage transactions (DatabaseService handles that)
- Contain business logic

Usage
-----
    class StudySessionRepository(BaseRepository[StudySession]):
        async def list_for_user(self, session, user_id):
            return await self.find_many_where(
                session, StudySession.user_id == user_id
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select, update

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def model_name(self) -> str:
        return self.model_class.__name__

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_name}",
            extra={"model": self.model_name, "found": instance is not None, "locked": for_update},
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Ordering clauses applied in sequence
            limit: Optional maximum number of results
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_name}",
            extra={"model": self.model_name, "found_count": len(instances), "limit": limit},
        )
        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def update_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        values: Dict[str, Any],
    ) -> int:
        """
        Issue ``UPDATE ... SET values WHERE conditions``.

        Returns:
            Number of rows the statement matched. Zero means the guard
            conditions no longer hold (for example, a stale version).
        """
        stmt = (
            update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        rowcount = result.rowcount

        self.log.debug(
            f"Repository.update_where: {self.model_name}",
            extra={"model": self.model_name, "rowcount": rowcount},
        )
        return rowcount

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self.log.debug(f"Repository.add: {self.model_name}", extra={"model": self.model_name})
        return instance

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
        self.log.debug(f"Repository.flush: {self.model_name}", extra={"model": self.model_name})
