"""Criteria, metrics and change-event models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskmate.models.task import Task, TaskStatus, normalize_status

SortColumn = Literal["created_at", "updated_at", "due_date", "title", "status"]

SORT_COLUMNS: tuple[str, ...] = (
    "created_at",
    "updated_at",
    "due_date",
    "title",
    "status",
)


class TaskOrder(BaseModel):
    """Single sort key and direction."""

    model_config = ConfigDict(frozen=True)

    column: SortColumn = "created_at"
    ascending: bool = False


class TaskCriteria(BaseModel):
    """Search, filter and sort settings for the task view.

    Criteria are immutable; the view replaces them wholesale.

    Attributes:
        search: Case-insensitive substring matched against the title
        status: Exact status filter, None for all statuses
        order: Sort column and direction
    """

    model_config = ConfigDict(frozen=True)

    search: str = ""
    status: TaskStatus | None = None
    order: TaskOrder = Field(default_factory=TaskOrder)

    @field_validator("search", mode="before")
    @classmethod
    def validate_search(cls, v: Any) -> str:
        # Kept verbatim; surrounding spaces are part of the substring
        return v or ""

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> TaskStatus | None:
        if v is None or v == "" or v == "all":
            return None
        return normalize_status(v)


class TaskMetrics(BaseModel):
    """Aggregate counts over the whole task table.

    Attributes:
        status_counts: Number of tasks per stored status value
        due_today: Tasks whose due date is today
        overdue: Incomplete tasks whose due date is before today
    """

    status_counts: dict[str, int] = Field(default_factory=dict)
    due_today: int = 0
    overdue: int = 0


class ChangeType(str, Enum):
    """Kinds of row change announced by the store."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A pushed notification that a task row changed remotely.

    ``new`` holds the row after INSERT/UPDATE. ``old`` holds whatever the
    store sends for the previous row; for DELETE that may be only the key.
    """

    type: ChangeType
    new: Task | None = None
    old: dict[str, Any] | None = None

    @property
    def task_id(self) -> Any:
        """Id of the affected row."""
        if self.new is not None:
            return self.new.id
        if self.old:
            return self.old.get("id")
        return None
