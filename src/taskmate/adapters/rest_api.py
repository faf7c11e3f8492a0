"""REST API adapter - TaskRepository backed by a PostgREST-style store.

Wraps the TasksAPI endpoint client, normalizes rows into Task models and
turns transport failures into QueryError.
"""

from __future__ import annotations

import asyncio
import warnings
from collections.abc import Awaitable
from datetime import date
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError as PydanticValidationError

from taskmate.errors import (
    NotConfiguredError,
    QueryError,
    RealtimeUnavailableError,
    SchemaMismatchWarning,
)
from taskmate.models import (
    AppConfig,
    RealtimeConfig,
    Task,
    TaskCreate,
    TaskCriteria,
    TaskId,
    TaskMetrics,
    TaskStatus,
    TaskUpdate,
    coerce_create,
    coerce_update,
    normalize_status,
    require_task_id,
)
from taskmate.repositories.repository import TaskRepository
from taskmate.services.api.client import APIClient
from taskmate.services.api.realtime import ChangeFeed
from taskmate.services.api.tasks import TasksAPI
from taskmate.utils.logger import get_logger
from taskmate.utils.task_filters import matches

T = TypeVar("T")

# PostgreSQL undefined_column and PostgREST unknown-column codes
MISSING_COLUMN_CODES = {"42703", "PGRST204"}


def _response_detail(response: httpx.Response) -> tuple[str, str | None]:
    """Extract (message, code) from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or response.reason_phrase or "request failed"), None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or str(body)
        code = body.get("code")
        return str(message), (str(code) if code is not None else None)
    return str(body), None


def is_missing_column_error(exc: httpx.HTTPStatusError) -> bool:
    """Whether a failed request was rejected because a column is unknown."""
    if exc.response.status_code >= 500:
        return False
    message, code = _response_detail(exc.response)
    if code in MISSING_COLUMN_CODES:
        return True
    text = message.lower()
    return "column" in text and (
        "does not exist" in text or "could not find" in text
    )


class RestApiTaskRepository(TaskRepository):
    """Task repository implementation using the store's REST API."""

    def __init__(
        self,
        client: APIClient,
        *,
        table: str = "tasks",
        status_names: dict[str, str] | None = None,
        realtime: RealtimeConfig | None = None,
    ):
        self.client = client
        self.table = table
        self.tasks_api = TasksAPI(client, table=table)
        self.status_names = status_names or {}
        self.realtime = realtime or RealtimeConfig()
        self.logger = get_logger("store")

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "RestApiTaskRepository":
        """Wire a repository and its HTTP client from configuration."""
        client = APIClient(config.store, transport=transport)
        return cls(
            client,
            table=config.store.table,
            status_names=config.store.status_names,
            realtime=config.realtime,
        )

    def _encode_status(self, status: TaskStatus) -> str:
        return self.status_names.get(status.value, status.value)

    def _to_task(self, row: dict[str, Any], context: str) -> Task:
        try:
            return Task.model_validate(row)
        except PydanticValidationError as e:
            raise QueryError(f"{context}: store returned an invalid row ({e})") from e

    async def _call(self, context: str, awaitable: Awaitable[T]) -> T:
        """Await a store call, converting transport errors to QueryError."""
        try:
            return await awaitable
        except NotConfiguredError:
            raise
        except httpx.HTTPStatusError as e:
            message, _ = _response_detail(e.response)
            self.logger.error("%s: HTTP %s %s", context, e.response.status_code, message)
            raise QueryError(
                f"{context}: {message}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            self.logger.error("%s: %s", context, e)
            raise QueryError(f"{context}: {e}") from e
        except ValueError as e:
            # A 2xx body that is not JSON, e.g. a login page reached by redirect
            self.logger.error("%s: undecodable response: %s", context, e)
            raise QueryError(f"{context}: store returned a non-JSON response") from e

    async def list_all(self, criteria: TaskCriteria) -> list[Task]:
        """List all tasks matching the criteria."""
        status = self._encode_status(criteria.status) if criteria.status else None
        rows = await self._call(
            "Failed to list tasks",
            self.tasks_api.list_tasks(
                status=status,
                search=criteria.search or None,
                order_column=criteria.order.column,
                ascending=criteria.order.ascending,
            ),
        )
        tasks = [self._to_task(row, "Failed to list tasks") for row in rows]
        if "*" in criteria.search:
            # The store saw each "*" as a one-character wildcard
            tasks = [task for task in tasks if matches(task, criteria)]
        return tasks

    async def get(self, task_id: TaskId | None) -> Task | None:
        """Get a specific task by ID."""
        task_id = require_task_id(task_id, "get")
        context = f"Failed to get task with id={task_id}"
        row = await self._call(context, self.tasks_api.get_task(task_id))
        return self._to_task(row, context) if row else None

    async def add(self, task_data: TaskCreate | dict[str, Any]) -> Task:
        """Create a new task."""
        task_data = coerce_create(task_data)
        payload = task_data.to_payload()
        payload["status"] = self._encode_status(task_data.status)

        row = await self._call(
            "Failed to create task", self.tasks_api.create_task(payload)
        )
        if not row:
            raise QueryError("Failed to create task: store returned no row")
        return self._to_task(row, "Failed to create task")

    async def update(
        self, task_id: TaskId | None, updates: TaskUpdate | dict[str, Any]
    ) -> Task:
        """Update an existing task."""
        task_id = require_task_id(task_id, "update")
        updates = coerce_update(updates)
        payload = updates.to_payload()
        if updates.status is not None:
            payload["status"] = self._encode_status(updates.status)

        context = f"Failed to update task with id={task_id}"
        row = await self._call(context, self.tasks_api.update_task(task_id, payload))
        if not row:
            raise QueryError(f"{context}: no such task", status_code=404)
        return self._to_task(row, context)

    async def delete(self, task_id: TaskId | None) -> bool:
        """Delete a task."""
        task_id = require_task_id(task_id, "delete")
        await self._call(
            f"Failed to delete task with id={task_id}",
            self.tasks_api.delete_task(task_id),
        )
        return True

    async def _column_exists(self, column: str) -> bool:
        """Probe a column. Only an unknown-column answer counts as missing."""
        try:
            await self.tasks_api.probe_column(column)
        except httpx.HTTPStatusError as e:
            return not is_missing_column_error(e)
        except httpx.HTTPError as e:
            self.logger.warning("probe for column %r failed: %s", column, e)
        return True

    def _degrade(self, message: str) -> None:
        self.logger.warning("metrics: %s", message)
        warnings.warn(message, SchemaMismatchWarning, stacklevel=3)

    async def metrics(self, today: date | None = None) -> TaskMetrics:
        """Fetch dashboard metrics, degrading parts the schema can't answer."""
        today = today or date.today()
        today_str = today.isoformat()

        has_status, has_due_date = await asyncio.gather(
            self._column_exists("status"),
            self._column_exists("due_date"),
        )

        status_counts: dict[str, int] = {}
        if has_status:
            try:
                rows = await self._call(
                    "Failed to fetch status list",
                    self.tasks_api.select_column("status"),
                )
            except QueryError as e:
                self._degrade(f"{e.message}; status counts left empty")
            else:
                for row in rows:
                    key = _status_key(row.get("status"))
                    status_counts[key] = status_counts.get(key, 0) + 1
        else:
            self._degrade("'status' column not found; status counts left empty")

        due_today = 0
        overdue = 0
        if has_due_date:
            overdue_filters = {"due_date": f"lt.{today_str}"}
            if has_status:
                overdue_filters["status"] = (
                    f"neq.{self._encode_status(TaskStatus.COMPLETED)}"
                )
            due_today_res, overdue_res = await asyncio.gather(
                self._call(
                    "Failed to count tasks due today",
                    self.tasks_api.count_tasks(due_date=f"eq.{today_str}"),
                ),
                self._call(
                    "Failed to count overdue tasks",
                    self.tasks_api.count_tasks(**overdue_filters),
                ),
                return_exceptions=True,
            )
            due_today = self._count_or_zero(due_today_res)
            overdue = self._count_or_zero(overdue_res)
        else:
            self._degrade("'due_date' column not found; due counts default to 0")

        return TaskMetrics(
            status_counts=status_counts, due_today=due_today, overdue=overdue
        )

    def _count_or_zero(self, result: int | BaseException) -> int:
        if isinstance(result, QueryError):
            self._degrade(f"{result.message}; defaulting to 0")
            return 0
        if isinstance(result, BaseException):
            raise result
        return result

    def realtime_available(self) -> bool:
        return self.realtime.enabled and self.client.is_configured

    def open_feed(self) -> ChangeFeed:
        if not self.realtime_available():
            raise RealtimeUnavailableError(
                "Realtime updates are unavailable: store is not configured "
                "or realtime.enabled is false"
            )
        return ChangeFeed(self.client, self.realtime.path, self.table)

    async def close(self) -> None:
        await self.client.close()


def _status_key(value: Any) -> str:
    if value is None:
        return "unknown"
    try:
        return normalize_status(value).value
    except ValueError:
        return str(value)
