"""Repository abstraction for the task store.

TaskRepository is the port the synchronization service talks to. Adapters
implement it against a concrete backend (the REST adapter in
``taskmate.adapters.rest_api``; tests use an in-memory fake).
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import date

import httpx

from taskmate.errors import QueryError, RealtimeUnavailableError
from taskmate.models import (
    ChangeEvent,
    Task,
    TaskCreate,
    TaskCriteria,
    TaskId,
    TaskMetrics,
    TaskUpdate,
)
from taskmate.utils.logger import get_logger

ChangeHandler = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], Awaitable[None]]


class TaskRepository(ABC):
    """Abstract base class for task persistence operations."""

    @abstractmethod
    async def list_all(self, criteria: TaskCriteria) -> list[Task]:
        """List tasks matching the criteria, in the criteria's order.

        Raises:
            QueryError: If the store call fails
        """
        raise NotImplementedError(
            "TaskRepository.list_all() must be implemented by adapter"
        )

    @abstractmethod
    async def get(self, task_id: TaskId | None) -> Task | None:
        """Get a task by ID, or None when no such task exists.

        Raises:
            ValidationError: If task_id is missing
            QueryError: If the store call fails
        """
        raise NotImplementedError("TaskRepository.get() must be implemented by adapter")

    @abstractmethod
    async def add(self, task_data: TaskCreate) -> Task:
        """Create a task and return it with its store-assigned fields.

        Raises:
            ValidationError: If the title is missing
            QueryError: If the store call fails
        """
        raise NotImplementedError("TaskRepository.add() must be implemented by adapter")

    @abstractmethod
    async def update(self, task_id: TaskId | None, updates: TaskUpdate) -> Task:
        """Write the explicitly-set fields of ``updates`` and return the row.

        Raises:
            ValidationError: If task_id is missing or updates is empty
            QueryError: If the store call fails
        """
        raise NotImplementedError(
            "TaskRepository.update() must be implemented by adapter"
        )

    @abstractmethod
    async def delete(self, task_id: TaskId | None) -> bool:
        """Delete a task. Deleting an absent task succeeds.

        Raises:
            ValidationError: If task_id is missing
            QueryError: If the store call fails
        """
        raise NotImplementedError(
            "TaskRepository.delete() must be implemented by adapter"
        )

    @abstractmethod
    async def metrics(self, today: date | None = None) -> TaskMetrics:
        """Compute status counts plus due-today and overdue counts.

        Parts that the store's schema cannot answer come back empty.
        """
        raise NotImplementedError(
            "TaskRepository.metrics() must be implemented by adapter"
        )

    def realtime_available(self) -> bool:
        """Whether ``open_feed`` can be used."""
        return False

    def open_feed(self) -> AsyncIterator[ChangeEvent]:
        """Open a change feed; the result must be closed with ``aclose()``.

        Raises:
            RealtimeUnavailableError: If the backend has no change feed
        """
        raise RealtimeUnavailableError("This task store has no change feed")

    async def close(self) -> None:
        """Release backend resources."""

    def subscribe(self, on_event: ChangeHandler) -> Unsubscribe:
        """Call ``on_event`` for every change until the returned callable runs.

        Must be called from a running event loop. Exceptions raised by the
        handler are logged and do not end the subscription.
        """
        logger = get_logger("realtime")
        feed = self.open_feed()

        async def pump() -> None:
            try:
                async for event in feed:
                    try:
                        on_event(event)
                    except Exception:
                        logger.exception("change handler failed for %s", event.type)
            except (QueryError, httpx.HTTPError) as e:
                logger.warning("change feed stopped: %s", e)

        task = asyncio.create_task(pump())

        async def unsubscribe() -> None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            finally:
                await feed.aclose()

        return unsubscribe
