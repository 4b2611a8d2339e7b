"""Instrumented execution of background tasks.

Wraps a unit of work, times it and writes one TaskHistory record when it
finishes. Recording is best-effort: a failure to save the record is logged
and never changes what the caller sees. Exceptions raised by the work itself
are recorded and then re-raised unchanged.

Usage:
    result = await with_task_history({"task": "send-pulses"}, send_pulses)

    async with track_task_history({"task": "sync-database", "db_id": 3}):
        await sync(...)
"""

import inspect
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Callable, Mapping, Optional, Union

from pydantic import BaseModel, StrictInt, StrictStr, ValidationError, field_validator

from errors import TaskInfoValidationError
from models.task_history import TaskHistory
from services.failure import FailureSummary
from services.store import TaskHistoryStore, get_task_history_store

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)


class TaskHistoryInfo(BaseModel):
    """What the caller tells the recorder about a task."""

    task: StrictStr  # conventionally kebab-cased, e.g. "send-pulses"
    db_id: Optional[StrictInt] = None  # resource involved, e.g. the synced database
    task_details: Optional[dict] = None

    @field_validator("task")
    @classmethod
    def task_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("task must be a non-blank string")
        return value


def validate_task_info(info: Union[TaskHistoryInfo, Mapping[str, Any]]) -> TaskHistoryInfo:
    """Validate caller-supplied task info before any work runs."""
    if isinstance(info, TaskHistoryInfo):
        return info
    try:
        return TaskHistoryInfo.model_validate(info)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise TaskInfoValidationError(
            f"Invalid task info: {first.get('msg')}",
            field=field,
            value=first.get("input"),
        ) from e


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _ms_to_datetime(ms: int) -> datetime:
    """Naive UTC datetime for an epoch-millisecond timestamp."""
    return _EPOCH + timedelta(milliseconds=ms)


async def _save_task_history(
    store: Optional[TaskHistoryStore],
    info: TaskHistoryInfo,
    start_ms: int,
    exc: Optional[Exception] = None,
) -> None:
    """Insert the record for a finished task. Never raises."""
    end_ms = max(_now_ms(), start_ms)

    try:
        if exc is None:
            task_details = info.task_details
        else:
            task_details = FailureSummary.from_exception(exc, info.task_details).to_details()

        record = TaskHistory.from_timing(
            task=info.task,
            db_id=info.db_id,
            task_details=task_details,
            started_at=_ms_to_datetime(start_ms),
            ended_at=_ms_to_datetime(end_ms),
        )
        if store is None:
            store = get_task_history_store()
        await store.insert_one(record)
        logger.debug(f"Recorded {info.task} ({record.duration}ms)")
    except Exception:
        logger.warning(f"Error saving task history for {info.task}", exc_info=True)


@asynccontextmanager
async def track_task_history(
    info: Union[TaskHistoryInfo, Mapping[str, Any]],
    *,
    store: Optional[TaskHistoryStore] = None,
) -> AsyncIterator[TaskHistoryInfo]:
    """Context manager that records a TaskHistory row for the wrapped block.

    Records on normal exit and on any Exception; in the latter case the
    record carries a failure summary and the exception is re-raised.

    Raises:
        TaskInfoValidationError: If ``info`` is invalid (the block is not run).
    """
    task_info = validate_task_info(info)
    start_ms = _now_ms()

    try:
        yield task_info
    except Exception as e:
        await _save_task_history(store, task_info, start_ms, e)
        raise

    await _save_task_history(store, task_info, start_ms)


async def with_task_history(
    info: Union[TaskHistoryInfo, Mapping[str, Any]],
    work: Callable[[], Any],
    *,
    store: Optional[TaskHistoryStore] = None,
) -> Any:
    """Run ``work`` and record its execution; returns whatever ``work`` returns.

    ``work`` takes no arguments and may be a plain function or return an
    awaitable (e.g. a coroutine function), which is awaited.
    """
    async with track_task_history(info, store=store):
        result = work()
        if inspect.isawaitable(result):
            result = await result
    return result
