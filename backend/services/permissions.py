"""Who may read and write task history.

Task history is permissioned as a whole, not per row. With advanced
permissions enabled the monitoring capability is enough; otherwise only
superusers (holders of the root path "/") get access. Reads and writes
require the same scope.
"""

from typing import Callable, FrozenSet, Iterable, Optional, Set

from pydantic import BaseModel, Field

from config import settings

ROOT_PERMISSION_PATH = "/"
MONITORING_PERMISSION_PATH = "/general/monitoring/"


class Actor(BaseModel):
    """The caller whose access is being checked."""

    id: Optional[int] = None
    is_superuser: bool = False
    permissions: Set[str] = Field(default_factory=set)

    @property
    def capabilities(self) -> FrozenSet[str]:
        """Held capability paths; superusers implicitly hold the root path."""
        if self.is_superuser:
            return frozenset(self.permissions | {ROOT_PERMISSION_PATH})
        return frozenset(self.permissions)


def required_scope(advanced_permissions_enabled: bool) -> FrozenSet[str]:
    """Capability paths needed to access task history."""
    if advanced_permissions_enabled:
        return frozenset({MONITORING_PERMISSION_PATH})
    return frozenset({ROOT_PERMISSION_PATH})


def _covers(granted: str, path: str) -> bool:
    # Whole segments only: "/gen" must not cover "/general/monitoring/"
    return granted == path or (granted.endswith("/") and path.startswith(granted))


def has_full_permissions(held: Iterable[str], required: Iterable[str]) -> bool:
    """True if every required path is covered by a held path.

    A held path ending in "/" covers every path below it, so "/" covers all.
    """
    held = list(held)
    return all(
        any(_covers(granted, path) for granted in held)
        for path in required
    )


def _advanced_permissions_from_settings() -> bool:
    return settings.enable_advanced_permissions


class TaskHistoryPermissions:
    """Read/write gate for task history records."""

    def __init__(self, advanced_permissions_enabled: Optional[Callable[[], bool]] = None):
        self._advanced_permissions_enabled = (
            advanced_permissions_enabled or _advanced_permissions_from_settings
        )

    def perms_objects_set(self) -> FrozenSet[str]:
        return required_scope(self._advanced_permissions_enabled())

    def can_read(self, actor: Actor) -> bool:
        return has_full_permissions(actor.capabilities, self.perms_objects_set())

    def can_write(self, actor: Actor) -> bool:
        return has_full_permissions(actor.capabilities, self.perms_objects_set())
