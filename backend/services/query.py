"""Read helpers for task history.

These do not check permissions; callers (the API layer) enforce
TaskHistoryPermissions.can_read before calling them.
"""

from typing import List, Optional

from errors import DataValidationError
from models.task_history import TaskHistory
from services.store import TaskHistoryStore, get_task_history_store


def _check_int(name: str, value, minimum: int) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise DataValidationError(
            f"{name} must be an integer >= {minimum}", field=name, value=value
        )


async def all_task_history(
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    *,
    store: Optional[TaskHistoryStore] = None,
) -> List[TaskHistory]:
    """Return task history newest first, applying limit and offset if given."""
    _check_int("limit", limit, 1)
    _check_int("offset", offset, 0)

    if store is None:
        store = get_task_history_store()
    return await store.select_ordered(limit=limit, offset=offset)


async def count_task_history(*, store: Optional[TaskHistoryStore] = None) -> int:
    if store is None:
        store = get_task_history_store()
    return await store.count()


async def get_task_history(
    task_history_id: int, *, store: Optional[TaskHistoryStore] = None
) -> Optional[TaskHistory]:
    if store is None:
        store = get_task_history_store()
    return await store.get(task_history_id)
