"""Client-side filtering and sorting of task collections."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from taskmate.models import Task, TaskCriteria, TaskStatus


def _sort_value(task: Task, column: str) -> Any:
    value = getattr(task, column, None)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime) and value.tzinfo is None:
        # Naive timestamps are treated as UTC so they compare with aware ones
        return value.replace(tzinfo=UTC)
    return value


def matches(task: Task, criteria: TaskCriteria) -> bool:
    """Whether a single task passes the status and search filters."""
    if criteria.status is not None and task.status != criteria.status:
        return False
    if criteria.search and criteria.search.lower() not in task.title.lower():
        return False
    return True


def apply_criteria(tasks: Iterable[Task], criteria: TaskCriteria) -> list[Task]:
    """Filter and sort tasks the same way the store does.

    The sort is stable: tasks with equal keys keep their input order in both
    directions. Missing values sort first when ascending and last when
    descending.
    """
    selected = [task for task in tasks if matches(task, criteria)]
    column = criteria.order.column
    return sorted(
        selected,
        key=lambda task: _nulls_first_key(_sort_value(task, column)),
        reverse=not criteria.order.ascending,
    )


def _nulls_first_key(value: Any) -> tuple[bool, Any]:
    # (False, None) sorts before every (True, value)
    return (value is not None, value)


def count_by_status(tasks: Iterable[Task]) -> dict[str, int]:
    """Count tasks per status, always including every status key."""
    counts = {status.value: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status.value] += 1
    return counts
