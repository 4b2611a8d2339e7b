"""Row-count retention for task history.

Orders records by ended_at (newest first), finds the ended_at of the first
row past ``keep_count`` (the cutoff) and deletes everything that ended at or
before it. When rows sharing the cutoff timestamp straddle the boundary, the
whole tie group is kept and only strictly older rows go, so at least
``keep_count`` rows always survive.
"""

import logging
from typing import Optional

from errors import DataValidationError
from models.task_history import TaskHistory
from services.store import TaskHistoryStore, get_task_history_store

logger = logging.getLogger(__name__)


async def cleanup_task_history(
    keep_count: int, *, store: Optional[TaskHistoryStore] = None
) -> bool:
    """Delete task history rows beyond the ``keep_count`` most recent.

    Returns:
        True if rows were deleted, False otherwise (including when there
        are at most ``keep_count`` rows).
    """
    if isinstance(keep_count, bool) or not isinstance(keep_count, int) or keep_count < 0:
        raise DataValidationError(
            "keep_count must be a non-negative integer", field="keep_count", value=keep_count
        )

    if store is None:
        store = get_task_history_store()

    clean_before = await store.select_ended_at(offset=keep_count)
    if clean_before is None:
        logger.debug(f"Task history cleanup: nothing beyond {keep_count} rows")
        return False

    criterion = TaskHistory.ended_at <= clean_before
    if keep_count > 0:
        last_kept = await store.select_ended_at(offset=keep_count - 1)
        if last_kept == clean_before:
            criterion = TaskHistory.ended_at < clean_before

    deleted = await store.delete_where(criterion)
    logger.info(
        f"Task history cleanup: deleted {deleted} rows ended before "
        f"{clean_before.isoformat()} (keep={keep_count})"
    )
    return deleted > 0
