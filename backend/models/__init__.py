"""Database models."""

from .task_history import TaskHistory

__all__ = [
    "TaskHistory",
]
