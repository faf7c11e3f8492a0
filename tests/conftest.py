"""Shared test fixtures and configuration.

Keeps tests away from the real config and log directories.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime
from unittest.mock import patch

import pytest

from taskmate.errors import QueryError
from taskmate.models import (
    AppConfig,
    StoreConfig,
    Task,
    TaskCreate,
    TaskCriteria,
    TaskMetrics,
    TaskUpdate,
)
from taskmate.repositories import TaskRepository
from taskmate.utils.task_filters import apply_criteria


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path):
    """Send log output to a temporary directory."""
    import taskmate.utils.logger as logger_module

    log_dir = tmp_path / "logs"
    with patch.object(logger_module, "_root", None):
        with patch(
            "taskmate.utils.logger.user_log_dir", return_value=str(log_dir)
        ):
            yield log_dir
            root = logger_module._root
            if root is not None:
                for handler in list(root.handlers):
                    handler.close()
                    root.removeHandler(handler)


@pytest.fixture()
def tmp_config(tmp_path, monkeypatch):
    """Provide a real ConfigService backed by a temporary directory.

    Store environment variables are cleared and the cached service is reset
    so each test starts from defaults.
    """
    from taskmate.services.config_service import (
        KEY_ENV_VARS,
        URL_ENV_VARS,
        ConfigService,
        get_config_service,
    )

    for name in URL_ENV_VARS + KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    config_dir = tmp_path / "config"
    get_config_service.cache_clear()
    with patch(
        "taskmate.services.config_service.user_config_dir",
        return_value=str(config_dir),
    ):
        yield ConfigService()
    get_config_service.cache_clear()


@pytest.fixture()
def app_config() -> AppConfig:
    """A configured AppConfig pointing at a fake store."""
    return AppConfig(
        store=StoreConfig(url="https://store.test", key="secret-key", retry=0)
    )


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------

_END = object()


class FakeFeed:
    """Change feed driven by the test through push/fail/end."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, event) -> None:
        self.queue.put_nowait(event)

    def fail(self, exc: BaseException) -> None:
        self.queue.put_nowait(exc)

    def end(self) -> None:
        self.queue.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed:
            raise StopAsyncIteration
        item = await self.queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class FakeTaskRepository(TaskRepository):
    """TaskRepository over a dict, with hooks to inject failures and delays."""

    def __init__(self, tasks: list[Task] | None = None, *, realtime: bool = True):
        self.rows: dict = {t.id: t for t in tasks or []}
        self.realtime = realtime
        self.feeds: list[FakeFeed] = []
        self.calls: list[tuple] = []
        self.list_error: Exception | None = None
        self.metrics_error: Exception | None = None
        self.mutation_error: Exception | None = None
        self.list_gate: asyncio.Event | None = None
        self.metrics_override: TaskMetrics | None = None
        self.closed = False
        self._next_id = 100

    async def list_all(self, criteria: TaskCriteria) -> list[Task]:
        self.calls.append(("list_all", criteria))
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return apply_criteria(self.rows.values(), criteria)

    async def get(self, task_id):
        self.calls.append(("get", task_id))
        return self.rows.get(task_id)

    async def add(self, task_data: TaskCreate) -> Task:
        self.calls.append(("add", task_data))
        if self.mutation_error is not None:
            raise self.mutation_error
        self._next_id += 1
        task = Task(
            id=self._next_id,
            created_at=datetime(2024, 6, 15, 12, 0, tzinfo=UTC),
            **task_data.model_dump(),
        )
        self.rows[task.id] = task
        return task

    async def update(self, task_id, updates: TaskUpdate) -> Task:
        self.calls.append(("update", task_id, updates))
        if self.mutation_error is not None:
            raise self.mutation_error
        if task_id not in self.rows:
            raise QueryError(f"Failed to update task with id={task_id}", 404)
        task = self.rows[task_id].model_copy(update=updates.model_dump(exclude_unset=True))
        self.rows[task_id] = task
        return task

    async def delete(self, task_id) -> bool:
        self.calls.append(("delete", task_id))
        if self.mutation_error is not None:
            raise self.mutation_error
        self.rows.pop(task_id, None)
        return True

    async def metrics(self, today: date | None = None) -> TaskMetrics:
        self.calls.append(("metrics", today))
        if self.metrics_error is not None:
            raise self.metrics_error
        if self.metrics_override is not None:
            return self.metrics_override
        today = today or date.today()
        status_counts: dict[str, int] = {}
        for task in self.rows.values():
            status_counts[task.status.value] = status_counts.get(task.status.value, 0) + 1
        return TaskMetrics(
            status_counts=status_counts,
            due_today=sum(1 for t in self.rows.values() if t.due_date == today),
            overdue=sum(1 for t in self.rows.values() if t.is_overdue(today)),
        )

    def realtime_available(self) -> bool:
        return self.realtime

    def open_feed(self) -> FakeFeed:
        if not self.realtime:
            return super().open_feed()
        feed = FakeFeed()
        self.feeds.append(feed)
        return feed

    async def close(self) -> None:
        self.closed = True


def make_task(task_id, title="Task", **kwargs) -> Task:
    return Task(id=task_id, title=title, **kwargs)


@pytest.fixture()
def fake_repo() -> FakeTaskRepository:
    return FakeTaskRepository(
        [
            make_task(
                1,
                "Write report",
                status="todo",
                due_date=date(2024, 6, 15),
                created_at=datetime(2024, 6, 1, tzinfo=UTC),
            ),
            make_task(
                2,
                "Review budget",
                status="in_progress",
                due_date=date(2024, 6, 10),
                created_at=datetime(2024, 6, 2, tzinfo=UTC),
            ),
            make_task(
                3,
                "Ship release",
                status="completed",
                created_at=datetime(2024, 6, 3, tzinfo=UTC),
            ),
        ]
    )
