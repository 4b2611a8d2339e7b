"""Durable storage for task history records.

The recorder, retention cleanup and query helpers only talk to the store
through TaskHistoryStore, so the storage engine can be swapped (tests bind
the SQL store to an in-memory SQLite engine).

Key features:
- Append-only: there is no update operation
- Ordered reads by ended_at (newest first) with optional limit/offset
- Bulk delete by predicate for retention
- Every call uses its own session, so a failed write never leaks into
  the caller's transaction
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from errors import StorageError
from models.task_history import TaskHistory


class TaskHistoryStore(ABC):
    """Storage operations the task history core depends on."""

    @abstractmethod
    async def insert_one(self, record: TaskHistory) -> int:
        """Persist one record and return its id.

        Raises:
            StorageError: On constraint violation or connectivity failure.
        """
        ...

    @abstractmethod
    async def select_ordered(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> List[TaskHistory]:
        """Return records ordered by ended_at descending."""
        ...

    @abstractmethod
    async def select_ended_at(self, offset: int) -> Optional[datetime]:
        """Return ended_at of the record at ``offset`` in newest-first order."""
        ...

    @abstractmethod
    async def delete_where(self, *criteria) -> int:
        """Delete every record matching all criteria. Returns rows deleted."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def get(self, task_history_id: int) -> Optional[TaskHistory]:
        ...


class SQLTaskHistoryStore(TaskHistoryStore):
    """TaskHistoryStore backed by a SQLAlchemy async session factory."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    @staticmethod
    def _newest_first(query):
        # id breaks ties between rows that ended in the same millisecond
        return query.order_by(desc(TaskHistory.ended_at), desc(TaskHistory.id))

    async def insert_one(self, record: TaskHistory) -> int:
        try:
            async with self.session_maker() as session:
                session.add(record)
                await session.commit()
                return record.id
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to insert task history: {e}", operation="insert") from e

    async def select_ordered(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> List[TaskHistory]:
        query = self._newest_first(select(TaskHistory))
        if limit is not None:
            query = query.limit(limit)
        if offset is not None:
            query = query.offset(offset)

        try:
            async with self.session_maker() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read task history: {e}", operation="select") from e

    async def select_ended_at(self, offset: int) -> Optional[datetime]:
        # Two queries (select cutoff, then delete) because MySQL cannot
        # delete with a LIMIT inside a nested query.
        query = (
            select(TaskHistory.ended_at)
            .order_by(desc(TaskHistory.ended_at))
            .offset(offset)
            .limit(1)
        )
        try:
            async with self.session_maker() as session:
                result = await session.execute(query)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read task history cutoff: {e}", operation="select") from e

    async def delete_where(self, *criteria) -> int:
        try:
            async with self.session_maker() as session:
                result = await session.execute(delete(TaskHistory).where(*criteria))
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete task history: {e}", operation="delete") from e

    async def count(self) -> int:
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(func.count()).select_from(TaskHistory))
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count task history: {e}", operation="count") from e

    async def get(self, task_history_id: int) -> Optional[TaskHistory]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    select(TaskHistory).where(TaskHistory.id == task_history_id)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read task history: {e}", operation="get") from e


_default_store: Optional[TaskHistoryStore] = None


def get_task_history_store() -> TaskHistoryStore:
    """Return the process-wide store bound to the application database."""
    global _default_store
    if _default_store is None:
        from database import async_session_maker

        _default_store = SQLTaskHistoryStore(async_session_maker)
    return _default_store
