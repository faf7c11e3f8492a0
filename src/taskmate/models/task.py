"""Task data models.

Rows coming back from the store are loosely typed; these models are the
boundary where they become closed, validated records. Unknown keys are
dropped, status spellings are normalized and due dates lose their time part.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from taskmate.errors import ValidationError

TaskId = str | int


class TaskStatus(str, Enum):
    """The three states a task can be in."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


_STATUS_ALIASES = {
    "todo": TaskStatus.TODO,
    "to_do": TaskStatus.TODO,
    "to-do": TaskStatus.TODO,
    "in_progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "in-progress": TaskStatus.IN_PROGRESS,
    "doing": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
    "complete": TaskStatus.COMPLETED,
    "done": TaskStatus.COMPLETED,
}


def normalize_status(value: Any) -> TaskStatus:
    """Map any accepted status spelling onto a TaskStatus.

    Raises:
        ValueError: If the value is not a known status spelling
    """
    if isinstance(value, TaskStatus):
        return value
    if isinstance(value, str):
        key = value.strip().lower().replace(" ", "_")
        if key in _STATUS_ALIASES:
            return _STATUS_ALIASES[key]
    raise ValueError(
        f"Unknown status {value!r}; expected one of: "
        + ", ".join(s.value for s in TaskStatus)
    )


def coerce_due_date(value: Any) -> Any:
    """Truncate datetimes (or ISO datetime strings) to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    return value


def _require_title(value: Any) -> str:
    if value is None:
        raise ValueError("title is required")
    text = str(value).strip()
    if not text:
        raise ValueError("title cannot be empty")
    return text


class Task(BaseModel):
    """Task model representing a persisted task row.

    Attributes:
        id: Store-assigned identifier (uuid string or serial integer)
        title: Task title, never empty
        description: Optional free text
        status: One of todo, in_progress, completed
        due_date: Optional calendar date
        created_at: Creation timestamp (server-assigned)
        updated_at: Last update timestamp (server-assigned)
    """

    model_config = ConfigDict(extra="ignore")

    id: TaskId
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    due_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        return _require_title(v)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> TaskStatus:
        if v is None:
            return TaskStatus.TODO
        return normalize_status(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v: Any) -> Any:
        return coerce_due_date(v)

    def is_overdue(self, today: date) -> bool:
        """Whether the task is past due and not completed."""
        return (
            self.due_date is not None
            and self.due_date < today
            and self.status != TaskStatus.COMPLETED
        )


class TaskCreate(BaseModel):
    """Model for creating a new task.

    Omitted optional fields fall back to the store defaults:
    status ``todo``, no description, no due date.
    """

    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    due_date: date | None = None

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        return _require_title(v)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> TaskStatus:
        if v is None:
            return TaskStatus.TODO
        return normalize_status(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v: Any) -> Any:
        return coerce_due_date(v)

    def to_payload(self) -> dict[str, Any]:
        """Serialize for an insert request."""
        return self.model_dump(mode="json")


class TaskUpdate(BaseModel):
    """Model for updating an existing task.

    All fields are optional - only fields that were explicitly given are
    written. Passing ``description=None`` or ``due_date=None`` clears the
    value; leaving them out keeps what the store has.
    """

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    due_date: date | None = None

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        return _require_title(v)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> TaskStatus:
        if v is None:
            raise ValueError("status cannot be null")
        return normalize_status(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v: Any) -> Any:
        return coerce_due_date(v)

    def to_payload(self) -> dict[str, Any]:
        """Serialize only the explicitly-set fields."""
        return self.model_dump(mode="json", exclude_unset=True)

    def is_empty(self) -> bool:
        return not self.model_fields_set


def _first_error(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ())) or "input"
    msg = str(err.get("msg", "invalid value"))
    return f"{field}: {msg.removeprefix('Value error, ')}"


def coerce_create(data: TaskCreate | dict[str, Any] | None) -> TaskCreate:
    """Build a TaskCreate, reporting bad input as ValidationError."""
    if isinstance(data, TaskCreate):
        return data
    if not data:
        raise ValidationError('create: "title" is required')
    try:
        return TaskCreate.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"create: {_first_error(e)}") from e


def coerce_update(data: TaskUpdate | dict[str, Any] | None) -> TaskUpdate:
    """Build a TaskUpdate, reporting bad or empty input as ValidationError."""
    if data is None:
        data = {}
    if not isinstance(data, TaskUpdate):
        try:
            data = TaskUpdate.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"update: {_first_error(e)}") from e
    if data.is_empty():
        raise ValidationError('update: "updates" must contain at least one field')
    return data


def require_task_id(task_id: TaskId | None, operation: str) -> TaskId:
    """Reject missing ids before anything is sent. ``0`` is a valid id."""
    if task_id is None or (isinstance(task_id, str) and not task_id.strip()):
        raise ValidationError(f'{operation}: "id" is required')
    return task_id
