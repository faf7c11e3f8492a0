"""Data models for TaskMate."""

from taskmate.models.config_models import (
    AppConfig,
    OutputConfig,
    RealtimeConfig,
    StoreConfig,
)
from taskmate.models.core import (
    SORT_COLUMNS,
    ChangeEvent,
    ChangeType,
    SortColumn,
    TaskCriteria,
    TaskMetrics,
    TaskOrder,
)
from taskmate.models.task import (
    Task,
    TaskCreate,
    TaskId,
    TaskStatus,
    TaskUpdate,
    coerce_create,
    coerce_update,
    normalize_status,
    require_task_id,
)

__all__ = [
    "AppConfig",
    "ChangeEvent",
    "ChangeType",
    "OutputConfig",
    "RealtimeConfig",
    "SORT_COLUMNS",
    "SortColumn",
    "StoreConfig",
    "Task",
    "TaskCreate",
    "TaskCriteria",
    "TaskId",
    "TaskMetrics",
    "TaskOrder",
    "TaskStatus",
    "TaskUpdate",
    "coerce_create",
    "coerce_update",
    "normalize_status",
    "require_task_id",
]
