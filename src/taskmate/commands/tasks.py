"""Task commands: list, show, add, edit, status, delete and metrics."""

import warnings
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime

import typer
from pydantic import ValidationError as PydanticValidationError

from taskmate.errors import QueryError, SchemaMismatchWarning, ValidationError
from taskmate.models import Task, TaskCriteria, TaskId, TaskOrder
from taskmate.services.config_service import resolve_output_format
from taskmate.services.context import build_sync_service
from taskmate.services.sync_service import TaskSyncService
from taskmate.utils.typer_helpers import SuggestingGroup
from taskmate.utils.ui.console import get_console
from taskmate.utils.ui.formatters import (
    build_tasks_table,
    format_info,
    format_metrics,
    format_output,
    format_success,
    format_tasks,
    format_warning,
)

from .decorators import command_wrapper

app = typer.Typer(cls=SuggestingGroup)
console = get_console()

DATE_FORMATS = ["%Y-%m-%d"]


def parse_task_id(value: str) -> TaskId:
    """Serial ids are sent as integers, anything else (uuids) as text."""
    value = value.strip()
    return int(value) if value.isdigit() else value


def build_criteria(
    status: str | None = None,
    search: str | None = None,
    sort: str = "created_at",
    ascending: bool = False,
) -> TaskCriteria:
    try:
        return TaskCriteria(
            search=search or "",
            status=status,
            order=TaskOrder(column=sort, ascending=ascending),
        )
    except PydanticValidationError as e:
        err = e.errors()[0]
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        raise ValidationError(f"Invalid options: {msg}") from e


@asynccontextmanager
async def sync_session(
    criteria: TaskCriteria | None = None,
    *,
    load: bool = True,
    realtime: bool = False,
) -> AsyncIterator[TaskSyncService]:
    """Open a sync service for the duration of one command."""
    service = build_sync_service(criteria, realtime=realtime)
    try:
        if load:
            await service.start()
        yield service
    finally:
        await service.close()
        await service.repository.close()


def _print_task(task: Task, output: str, message: str | None = None) -> None:
    if output in ("json", "yaml"):
        format_output(task.model_dump(mode="json"), output)
        return
    if message:
        format_success(message)
    console.print(build_tasks_table([task]))


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


@app.command("list")
@command_wrapper
async def list_tasks(
    status: str | None = typer.Option(
        None, "--status", "-s", help="Filter by status (todo/in_progress/completed)"
    ),
    search: str | None = typer.Option(None, "--search", help="Search in titles"),
    sort: str = typer.Option("created_at", "--sort", help="Sort column"),
    asc: bool = typer.Option(False, "--asc", help="Sort ascending"),
    output: str | None = typer.Option(
        None, "--output", "-o", help="Output format (table, json, yaml)"
    ),
) -> None:
    """List tasks."""
    output = resolve_output_format(output)
    criteria = build_criteria(status, search, sort, asc)
    async with sync_session(criteria) as service:
        if service.last_error is not None:
            raise service.last_error
        format_tasks(service.tasks, output)
        if output == "table" and service.tasks:
            counts = service.counts
            console.print(
                f"[dim]{len(service.tasks)} tasks: "
                + ", ".join(f"{k}={v}" for k, v in counts.items())
                + "[/dim]"
            )


@app.command("show")
@command_wrapper
async def show_task(
    task_id: str = typer.Argument(..., help="Task ID"),
    output: str | None = typer.Option(
        None, "--output", "-o", help="Output format (table, json, yaml)"
    ),
) -> None:
    """Show a single task."""
    output = resolve_output_format(output)
    async with sync_session(load=False) as service:
        task = await service.repository.get(parse_task_id(task_id))
        if task is None:
            raise QueryError(f"Task not found: {task_id}", status_code=404)
        if output in ("json", "yaml"):
            format_output(task.model_dump(mode="json"), output)
        else:
            format_output(task.model_dump(mode="json"))


@app.command("add")
@command_wrapper
async def add_task(
    title: str = typer.Argument(..., help="Task title"),
    description: str | None = typer.Option(
        None, "--description", "-d", help="Task description"
    ),
    status: str | None = typer.Option(None, "--status", "-s", help="Initial status"),
    due: datetime | None = typer.Option(
        None, "--due", formats=DATE_FORMATS, help="Due date (YYYY-MM-DD)"
    ),
    output: str | None = typer.Option(
        None, "--output", "-o", help="Output format (table, json, yaml)"
    ),
) -> None:
    """Create a task."""
    output = resolve_output_format(output)
    data = {"title": title, "description": description, "due_date": _as_date(due)}
    if status is not None:
        data["status"] = status
    async with sync_session(load=False) as service:
        task = await service.create(data)
    _print_task(task, output, f"Task created: {task.id}")


@app.command("edit")
@command_wrapper
async def edit_task(
    task_id: str = typer.Argument(..., help="Task ID"),
    title: str | None = typer.Option(None, "--title", "-t", help="New title"),
    description: str | None = typer.Option(
        None, "--description", "-d", help="New description"
    ),
    status: str | None = typer.Option(None, "--status", "-s", help="New status"),
    due: datetime | None = typer.Option(
        None, "--due", formats=DATE_FORMATS, help="New due date (YYYY-MM-DD)"
    ),
    clear_due: bool = typer.Option(False, "--clear-due", help="Remove the due date"),
    output: str | None = typer.Option(
        None, "--output", "-o", help="Output format (table, json, yaml)"
    ),
) -> None:
    """Edit a task. Only the given fields change."""
    output = resolve_output_format(output)
    if due is not None and clear_due:
        raise ValidationError("--due and --clear-due cannot be used together")

    updates: dict = {}
    if title is not None:
        updates["title"] = title
    if description is not None:
        updates["description"] = description
    if status is not None:
        updates["status"] = status
    if due is not None:
        updates["due_date"] = _as_date(due)
    elif clear_due:
        updates["due_date"] = None

    async with sync_session(load=False) as service:
        task = await service.update(parse_task_id(task_id), updates)
    _print_task(task, output, f"Task updated: {task.id}")


@app.command("status")
@command_wrapper
async def set_status(
    task_id: str = typer.Argument(..., help="Task ID"),
    status: str = typer.Argument(..., help="New status"),
    output: str | None = typer.Option(
        None, "--output", "-o", help="Output format (table, json, yaml)"
    ),
) -> None:
    """Move a task to another status."""
    output = resolve_output_format(output)
    async with sync_session(load=False) as service:
        task = await service.change_status({"id": parse_task_id(task_id)}, status)
    _print_task(task, output, f"Task {task.id} is now {task.status.value}")


@app.command("delete")
@command_wrapper
async def delete_task(
    task_id: str = typer.Argument(..., help="Task ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a task."""
    if not yes and not typer.confirm(f"Delete task {task_id}?"):
        format_info("Cancelled")
        raise typer.Exit(0)
    async with sync_session(load=False) as service:
        await service.delete(parse_task_id(task_id))
    format_success(f"Task deleted: {task_id}")


@app.command("metrics")
@command_wrapper
async def show_metrics(
    output: str | None = typer.Option(
        None, "--output", "-o", help="Output format (table, json, yaml)"
    ),
) -> None:
    """Show task counts by status, due today and overdue."""
    output = resolve_output_format(output)
    async with sync_session(load=False) as service:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", SchemaMismatchWarning)
            metrics = await service.repository.metrics()
    format_metrics(metrics, output)
    if output in ("json", "yaml"):
        return
    for warning in caught:
        if issubclass(warning.category, SchemaMismatchWarning):
            format_warning(str(warning.message))
