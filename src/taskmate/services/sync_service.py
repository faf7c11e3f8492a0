"""Task synchronization service.

Keeps a local, filtered and sorted view of the remote task table plus
aggregate metrics, and keeps it consistent with the store as mutations
complete and change events arrive.

State is committed only after the store confirms a mutation. Callers that
want to show that something is in flight can read ``pending_ids``; nothing
is ever rolled back because nothing speculative is ever applied.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import date
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from taskmate.errors import QueryError, TaskMateError, ValidationError
from taskmate.models import (
    ChangeEvent,
    ChangeType,
    Task,
    TaskCreate,
    TaskCriteria,
    TaskId,
    TaskMetrics,
    TaskStatus,
    TaskUpdate,
    coerce_create,
    coerce_update,
    require_task_id,
)
from taskmate.repositories import TaskRepository
from taskmate.services.api.realtime import parse_change_payload
from taskmate.utils.logger import get_logger
from taskmate.utils.task_filters import apply_criteria, count_by_status

Listener = Callable[["TaskSyncService"], None]


class TaskSyncService:
    """Client-side view of the task table.

    Attributes:
        raw_tasks: Every task known locally, as last fetched or pushed
        tasks: ``raw_tasks`` as seen through the current criteria
        metrics: Last metrics snapshot from the store
        criteria: Active search, filter and sort settings
        loading: True while the current full fetch is in flight
        last_error: Last fetch or metrics failure, None when healthy
        pending_ids: Ids with a mutation in flight
    """

    def __init__(
        self,
        repository: TaskRepository,
        criteria: TaskCriteria | None = None,
        *,
        realtime: bool = True,
        today: Callable[[], date] = date.today,
    ):
        self.repository = repository
        self.raw_tasks: list[Task] = []
        self.tasks: list[Task] = []
        self.metrics = TaskMetrics()
        self.criteria = criteria or TaskCriteria()
        self.loading = True
        self.last_error: TaskMateError | None = None
        self.pending_ids: set[TaskId] = set()

        self._realtime = realtime
        self._today = today
        self._generation = 0
        self._metrics_seq = 0
        self._metrics_applied_seq = 0
        self._metrics_task: asyncio.Task | None = None
        self._metrics_dirty = False
        self._feed: AsyncIterator[ChangeEvent] | None = None
        self._feed_task: asyncio.Task | None = None
        self._listeners: list[Listener] = []
        self.logger = get_logger("sync")

    async def __aenter__(self) -> "TaskSyncService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Derived state and listeners
    # ------------------------------------------------------------------

    @property
    def counts(self) -> dict[str, int]:
        """Per-status counts over the visible tasks."""
        return count_by_status(self.tasks)

    @property
    def realtime_active(self) -> bool:
        return self._feed_task is not None and not self._feed_task.done()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every state change.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                self.logger.exception("state listener failed")

    def dismiss_error(self) -> None:
        self.last_error = None
        self._notify()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the first view and subscribe to changes when possible."""
        await self.refresh()
        if not self._realtime:
            return
        if not self.repository.realtime_available():
            self.logger.info("realtime unavailable; relying on manual refresh")
            return
        self._feed = self.repository.open_feed()
        self._feed_task = asyncio.create_task(self._consume_feed(self._feed))

    async def close(self) -> None:
        """Stop the change feed and any background metrics refresh."""
        for task in (self._feed_task, self._metrics_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._feed_task = None
        self._metrics_task = None
        if self._feed is not None:
            await self._feed.aclose()
            self._feed = None

    async def _consume_feed(self, feed: AsyncIterator[ChangeEvent]) -> None:
        try:
            async for event in feed:
                self.apply_change(event)
        except (QueryError, httpx.HTTPError) as e:
            self.logger.warning("change feed stopped: %s", e)
            self.last_error = QueryError(
                f"Live updates stopped ({e}); use refresh to reload"
            )
        else:
            self.logger.info("change feed ended")
        finally:
            self._notify()

    # ------------------------------------------------------------------
    # Full view fetch
    # ------------------------------------------------------------------

    async def set_criteria(self, criteria: TaskCriteria | dict[str, Any]) -> None:
        """Replace the criteria and reload the view."""
        if not isinstance(criteria, TaskCriteria):
            try:
                criteria = TaskCriteria.model_validate(criteria)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid criteria: {e}") from e
        self.criteria = criteria
        await self._fetch()

    async def refresh(self) -> None:
        """Reload tasks and metrics for the current criteria.

        Failures do not raise; they land in ``last_error`` and the previous
        data stays visible.
        """
        await self._fetch()

    async def _fetch(self) -> None:
        self._generation += 1
        generation = self._generation
        criteria = self.criteria
        metrics_seq = self._next_metrics_seq()

        self.loading = True
        self.last_error = None
        self._notify()
        try:
            tasks, metrics = await asyncio.gather(
                self.repository.list_all(criteria),
                self.repository.metrics(self._today()),
            )
        except TaskMateError as e:
            if generation != self._generation:
                self.logger.debug("discarding error from stale fetch %d", generation)
                return
            self.logger.warning("fetch %d failed: %s", generation, e)
            self.last_error = e
        else:
            if generation != self._generation:
                self.logger.debug("discarding stale fetch %d", generation)
                return
            self.raw_tasks = list(tasks)
            self.tasks = list(tasks)
            self._apply_metrics(metrics_seq, metrics)
        finally:
            if generation == self._generation:
                self.loading = False
                self._notify()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, task_data: TaskCreate | dict[str, Any]) -> Task:
        """Create a task and show it at the top of the view."""
        task_data = coerce_create(task_data)
        created = await self.repository.add(task_data)
        self._upsert(created, reapply=False)
        self._notify()
        await self._refresh_metrics()
        return created

    async def update(
        self, task_id: TaskId | None, updates: TaskUpdate | dict[str, Any]
    ) -> Task:
        """Update a task and replace it in the view."""
        task_id = require_task_id(task_id, "update")
        updates = coerce_update(updates)
        self._set_pending(task_id, True)
        try:
            updated = await self.repository.update(task_id, updates)
        finally:
            self._set_pending(task_id, False)
        self._replace(updated, reapply=False)
        self._notify()
        await self._refresh_metrics()
        return updated

    async def delete(self, task_id: TaskId | None) -> bool:
        """Delete a task and drop it from the view."""
        task_id = require_task_id(task_id, "delete")
        self._set_pending(task_id, True)
        try:
            await self.repository.delete(task_id)
        finally:
            self._set_pending(task_id, False)
        self._remove(task_id, reapply=False)
        self._notify()
        await self._refresh_metrics()
        return True

    async def change_status(
        self, task: Task | dict[str, Any] | None, new_status: TaskStatus | str
    ) -> Task:
        """Move a task to another status."""
        if isinstance(task, dict):
            task_id = task.get("id")
        else:
            task_id = getattr(task, "id", None)
        if task is None or task_id is None:
            raise ValidationError('change_status: "task" with an id is required')
        return await self.update(task_id, {"status": new_status})

    def _set_pending(self, task_id: TaskId, pending: bool) -> None:
        if pending:
            self.pending_ids.add(task_id)
        else:
            self.pending_ids.discard(task_id)
        self._notify()

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------

    def apply_change(self, event: ChangeEvent | dict[str, Any]) -> None:
        """Merge a pushed change into local state.

        Must run inside the event loop; it schedules a metrics refresh.
        """
        if not isinstance(event, ChangeEvent):
            try:
                event = parse_change_payload(event)
            except ValueError as e:
                raise ValidationError(f"Invalid change event: {e}") from e
        if event.type is not ChangeType.DELETE and event.new is None:
            raise ValidationError(f"{event.type.value} event without a row")

        self.logger.debug("change event %s id=%s", event.type.value, event.task_id)
        if event.type is ChangeType.INSERT:
            self._upsert(event.new)
        elif event.type is ChangeType.UPDATE:
            self._replace(event.new)
        else:
            self._remove(event.task_id)
        self._notify()
        self._schedule_metrics_refresh()

    # Every state change, local or pushed, goes through these three helpers.
    # reapply=True rebuilds the view from raw_tasks under the current criteria;
    # reapply=False patches the view directly.

    def _upsert(self, task: Task, *, reapply: bool = True) -> None:
        self.raw_tasks = _upsert_by_id(self.raw_tasks, task)
        if reapply:
            self.tasks = apply_criteria(self.raw_tasks, self.criteria)
        else:
            self.tasks = _upsert_by_id(self.tasks, task)

    def _replace(self, task: Task, *, reapply: bool = True) -> None:
        self.raw_tasks = _replace_by_id(self.raw_tasks, task)
        if reapply:
            self.tasks = apply_criteria(self.raw_tasks, self.criteria)
        else:
            self.tasks = _replace_by_id(self.tasks, task)

    def _remove(self, task_id: TaskId, *, reapply: bool = True) -> None:
        self.raw_tasks = [t for t in self.raw_tasks if t.id != task_id]
        if reapply:
            self.tasks = apply_criteria(self.raw_tasks, self.criteria)
        else:
            self.tasks = [t for t in self.tasks if t.id != task_id]

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _next_metrics_seq(self) -> int:
        self._metrics_seq += 1
        return self._metrics_seq

    def _apply_metrics(self, seq: int, metrics: TaskMetrics) -> None:
        # A slower, older request must not overwrite a newer snapshot
        if seq < self._metrics_applied_seq:
            self.logger.debug("discarding stale metrics %d", seq)
            return
        self._metrics_applied_seq = seq
        self.metrics = metrics

    async def _refresh_metrics(self) -> None:
        seq = self._next_metrics_seq()
        try:
            metrics = await self.repository.metrics(self._today())
        except TaskMateError as e:
            self.logger.warning("metrics refresh failed: %s", e)
            self.last_error = e
        else:
            self._apply_metrics(seq, metrics)
        self._notify()

    def _schedule_metrics_refresh(self) -> None:
        """Refresh metrics in the background, coalescing bursts of events."""
        if self._metrics_task is not None and not self._metrics_task.done():
            self._metrics_dirty = True
            return
        self._metrics_task = asyncio.create_task(self._metrics_loop())

    async def _metrics_loop(self) -> None:
        while True:
            self._metrics_dirty = False
            await self._refresh_metrics()
            if not self._metrics_dirty:
                return

    async def wait_for_metrics(self) -> None:
        """Wait until background metrics refreshes have settled."""
        while self._metrics_task is not None and not self._metrics_task.done():
            await asyncio.shield(self._metrics_task)


def _upsert_by_id(tasks: list[Task], task: Task) -> list[Task]:
    if any(t.id == task.id for t in tasks):
        return [task if t.id == task.id else t for t in tasks]
    return [task, *tasks]


def _replace_by_id(tasks: list[Task], task: Task) -> list[Task]:
    return [task if t.id == task.id else t for t in tasks]
