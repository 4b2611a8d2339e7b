"""Task history model: one immutable row per instrumented task execution.

Rows are written once by the recorder when a task finishes (successfully or
not) and removed only by the retention cleanup. There is no update path.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import String, DateTime, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column

from database import Base

_ONE_MS = timedelta(milliseconds=1)


class TaskHistory(Base):
    """Audit record of a single task execution."""

    __tablename__ = "task_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Task name, conventionally kebab-cased (e.g. "send-pulses")
    task: Mapped[str] = mapped_column(String(254), nullable=False, index=True)

    # Associated resource (e.g. the database being synced)
    db_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Timing (naive UTC, millisecond precision)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ended_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # milliseconds

    # Caller-supplied details, or the failure summary when the task raised
    task_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    @classmethod
    def from_timing(
        cls,
        task: str,
        started_at: datetime,
        ended_at: datetime,
        db_id: Optional[int] = None,
        task_details: Optional[dict] = None,
    ) -> "TaskHistory":
        """Build a record, deriving duration from the two timestamps."""
        if ended_at < started_at:
            raise ValueError("ended_at must not be before started_at")
        duration = (ended_at - started_at) // _ONE_MS
        return cls(
            task=task,
            db_id=db_id,
            task_details=task_details,
            started_at=started_at,
            ended_at=ended_at,
            duration=duration,
        )

    @property
    def failed(self) -> bool:
        """Whether this execution recorded a failure."""
        return bool(self.task_details) and self.task_details.get("status") == "failed"

    def __repr__(self) -> str:
        return f"<TaskHistory {self.id} {self.task} {self.duration}ms>"
