"""Structured summaries of exceptions raised by instrumented tasks.

A FailureSummary is what the recorder stores as ``task_details`` when a task
raises. It serializes itself (``to_details``) so no global JSON encoder hook is
needed for exception objects.
"""

import traceback
from pathlib import Path
from typing import Any, List, Literal, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from errors import TaskHistoryError

# Directory holding the application's top-level modules. From a source
# checkout this is backend/, after an install it is site-packages, so
# frames are matched against APP_MODULES rather than the whole directory.
APP_ROOT = Path(__file__).resolve().parent.parent
APP_MODULES = frozenset({
    "api", "jobs", "models", "services", "tests",
    "config.py", "database.py", "errors.py", "main.py",
})


def exception_name(exc: BaseException) -> str:
    """Qualified class name of an exception; builtins stay unqualified."""
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def filtered_stacktrace(exc: BaseException, max_frames: Optional[int] = None) -> List[str]:
    """Render the traceback of ``exc`` as app-relative frames.

    Only frames from the application's own modules (APP_MODULES under
    APP_ROOT) are kept, and paths are made relative so the stored trace
    does not expose the deployment layout.
    The innermost ``max_frames`` frames are returned.
    """
    if max_frames is None:
        max_frames = settings.task_history_max_stacktrace_frames

    frames = []
    for frame in traceback.extract_tb(exc.__traceback__):
        try:
            path = Path(frame.filename).resolve().relative_to(APP_ROOT)
        except ValueError:
            continue
        if not path.parts or path.parts[0] not in APP_MODULES:
            continue
        frames.append(f"{path.as_posix()}:{frame.lineno} in {frame.name}")

    if max_frames <= 0:
        return []
    return frames[-max_frames:]


def to_jsonable(value: Any) -> Any:
    """Best-effort conversion of ``value`` into JSON-compatible data."""
    if value is None:
        return None
    try:
        return jsonable_encoder(value)
    except (TypeError, ValueError):
        return repr(value)


def exception_data(exc: BaseException) -> Optional[dict]:
    """Structured context attached to an exception, if any.

    Picks up the ``details`` dict of TaskHistoryError subclasses, and a
    ``details`` or ``data`` dict on foreign exceptions.
    """
    for attr in ("details", "data"):
        value = getattr(exc, attr, None)
        if isinstance(value, dict) and value:
            return to_jsonable(value)
    return None


class FailureSummary(BaseModel):
    """Task details recorded for a failed execution."""

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["failed"] = "failed"
    exception: str
    message: str
    stacktrace: List[str] = Field(default_factory=list)
    ex_data: Optional[Any] = Field(default=None, alias="ex-data")
    original_info: Optional[Any] = Field(default=None, alias="original-info")

    @classmethod
    def from_exception(
        cls, exc: BaseException, original_info: Optional[dict] = None
    ) -> "FailureSummary":
        return cls(
            exception=exception_name(exc),
            message=exc.message if isinstance(exc, TaskHistoryError) else str(exc),
            stacktrace=filtered_stacktrace(exc),
            ex_data=exception_data(exc),
            original_info=to_jsonable(original_info),
        )

    def to_details(self) -> dict:
        """Serialize with the stored key names (``ex-data``, ``original-info``)."""
        return self.model_dump(by_alias=True, mode="json")
