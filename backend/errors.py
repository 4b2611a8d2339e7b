"""Centralized exception hierarchy for the task history service.

All exceptions inherit from TaskHistoryError. The ``details`` dict carries
structured context and is what the recorder stores as ``ex-data`` when one of
these errors escapes an instrumented task.
"""


class TaskHistoryError(Exception):
    """Base exception for all task history errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        # Unset context (None) is left out so it never shows up as ex-data
        self.details = {k: v for k, v in (details or {}).items() if v is not None}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class StorageError(TaskHistoryError):
    """The record store rejected an operation (constraint or connectivity)."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(message, {"operation": operation})
        self.operation = operation


class DataValidationError(TaskHistoryError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None, value=None):
        super().__init__(message, {"field": field, "value": value})
        self.field = field
        self.value = value


class TaskInfoValidationError(DataValidationError):
    """Invalid task info passed to the recorder."""


class PermissionDeniedError(TaskHistoryError):
    """Actor lacks the capabilities required for the operation."""

    def __init__(self, message: str = "You don't have permissions to do that.", required=None):
        super().__init__(message, {"required": sorted(required or [])})
        self.required = frozenset(required or [])


class ConfigurationError(TaskHistoryError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, setting: str = None):
        super().__init__(message, {"setting": setting})
        self.setting = setting
