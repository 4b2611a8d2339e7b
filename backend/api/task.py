"""Task history API endpoints.

Every endpoint checks TaskHistoryPermissions against the current actor.
Authentication happens upstream: the gateway in front of this service sets
the X-Actor-* headers read by get_current_actor.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel

from config import settings
from errors import PermissionDeniedError
from services.permissions import Actor, TaskHistoryPermissions
from services.query import all_task_history, count_task_history, get_task_history
from services.retention import cleanup_task_history
from services.store import TaskHistoryStore, get_task_history_store

router = APIRouter()


class TaskHistoryResponse(BaseModel):
    """Task history response schema."""

    id: int
    task: str
    db_id: Optional[int] = None
    started_at: datetime
    ended_at: datetime
    duration: int
    task_details: Optional[dict] = None

    model_config = {"from_attributes": True}


class TaskHistoryListResponse(BaseModel):
    """Paginated task history list."""

    data: List[TaskHistoryResponse]
    total: int
    limit: Optional[int] = None
    offset: Optional[int] = None


class CleanupResponse(BaseModel):
    """Result of a retention run."""

    deleted: bool
    keep: int


def get_store() -> TaskHistoryStore:
    return get_task_history_store()


def get_permissions() -> TaskHistoryPermissions:
    return TaskHistoryPermissions()


def get_current_actor(
    x_actor_id: Optional[int] = Header(None),
    x_actor_superuser: bool = Header(False),
    x_actor_permissions: Optional[str] = Header(None),
) -> Actor:
    """Build the actor from the headers set by the authenticating gateway."""
    permissions = set()
    if x_actor_permissions:
        permissions = {p.strip() for p in x_actor_permissions.split(",") if p.strip()}
    return Actor(id=x_actor_id, is_superuser=x_actor_superuser, permissions=permissions)


def require_enabled() -> None:
    if not settings.enable_task_history_api:
        raise HTTPException(status_code=404, detail="Task history endpoint is disabled")


def check_read(
    actor: Actor = Depends(get_current_actor),
    permissions: TaskHistoryPermissions = Depends(get_permissions),
) -> Actor:
    if not permissions.can_read(actor):
        raise PermissionDeniedError(required=permissions.perms_objects_set())
    return actor


def check_write(
    actor: Actor = Depends(get_current_actor),
    permissions: TaskHistoryPermissions = Depends(get_permissions),
) -> Actor:
    if not permissions.can_write(actor):
        raise PermissionDeniedError(required=permissions.perms_objects_set())
    return actor


@router.get("", response_model=TaskHistoryListResponse, dependencies=[Depends(require_enabled)])
async def list_task_history(
    limit: Optional[int] = Query(None, ge=1, description="Max rows to return"),
    offset: Optional[int] = Query(None, ge=0, description="Rows to skip"),
    _actor: Actor = Depends(check_read),
    store: TaskHistoryStore = Depends(get_store),
):
    """List task history, most recently finished first."""
    rows = await all_task_history(limit, offset, store=store)
    total = await count_task_history(store=store)

    return TaskHistoryListResponse(
        data=[TaskHistoryResponse.model_validate(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/cleanup", response_model=CleanupResponse, dependencies=[Depends(require_enabled)])
async def run_cleanup(
    keep: Optional[int] = Query(None, ge=0, description="Rows to keep"),
    _actor: Actor = Depends(check_write),
    store: TaskHistoryStore = Depends(get_store),
):
    """Trim task history down to roughly ``keep`` rows."""
    if keep is None:
        keep = settings.task_history_keep_rows
    deleted = await cleanup_task_history(keep, store=store)
    return CleanupResponse(deleted=deleted, keep=keep)


@router.get("/{task_history_id}", response_model=TaskHistoryResponse, dependencies=[Depends(require_enabled)])
async def get_task(
    task_history_id: int,
    _actor: Actor = Depends(check_read),
    store: TaskHistoryStore = Depends(get_store),
):
    """Get a single task history entry by ID."""
    row = await get_task_history(task_history_id, store=store)
    if not row:
        raise HTTPException(status_code=404, detail="Task history not found")
    return TaskHistoryResponse.model_validate(row)
