"""Output formatters for tasks and metrics."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import date
from typing import Any

import yaml
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from taskmate.models import Task, TaskId, TaskMetrics, TaskStatus
from taskmate.utils.ui.console import get_console

console = get_console()

STATUS_STYLES = {
    TaskStatus.TODO: ("To Do", "blue"),
    TaskStatus.IN_PROGRESS: ("In Progress", "yellow"),
    TaskStatus.COMPLETED: ("Done", "green"),
}


def format_output(data: Any, output_format: str = "table") -> None:
    """Print plain data as json, yaml or a table."""
    if output_format == "json":
        print(json.dumps(data, indent=2, default=str))
    elif output_format == "yaml":
        print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
    elif isinstance(data, dict):
        format_single_item(data)
    else:
        console.print(data)


def format_single_item(item: dict) -> None:
    """Format a single item as key-value pairs."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    for key, value in item.items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in value.items()) or "-"
        elif value is None:
            value = "-"
        table.add_row(key.replace("_", " ").title(), Text(str(value)))

    console.print(table)


def format_status(status: TaskStatus) -> Text:
    label, color = STATUS_STYLES[status]
    return Text(label, style=color)


def format_due_date(due: date | None, today: date, status: TaskStatus) -> Text:
    """Render a due date, highlighting today and overdue dates."""
    if due is None:
        return Text("-", style="dim")
    label = due.strftime("%d/%m") if due.year == today.year else due.strftime("%d/%m/%Y")
    if due == today:
        return Text(f"{label} (today)", style="bold yellow")
    if due < today and status != TaskStatus.COMPLETED:
        return Text(f"{label} (overdue)", style="bold red")
    return Text(label)


def build_tasks_table(
    tasks: Iterable[Task],
    *,
    today: date | None = None,
    pending_ids: Iterable[TaskId] = (),
    title: str | None = None,
) -> Table:
    """Build a rich Table for a list of tasks."""
    today = today or date.today()
    pending = set(pending_ids)
    table = Table(show_header=True, header_style="bold magenta", title=title)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Due")
    table.add_column("Description", overflow="fold")

    for task in tasks:
        task_title = Text(task.title)
        if task.id in pending:
            task_title.append(" …", style="dim")
        table.add_row(
            str(task.id),
            task_title,
            format_status(task.status),
            format_due_date(task.due_date, today, task.status),
            Text(task.description or ""),
        )
    return table


def build_metrics_table(metrics: TaskMetrics) -> Table:
    """Build a one-row summary of the metrics snapshot."""
    table = Table(show_header=True, header_style="bold magenta")
    for status in TaskStatus:
        table.add_column(STATUS_STYLES[status][0], justify="right")
    table.add_column("Due Today", justify="right")
    table.add_column("Overdue", justify="right")
    table.add_row(
        *(str(metrics.status_counts.get(status.value, 0)) for status in TaskStatus),
        str(metrics.due_today),
        Text(str(metrics.overdue), style="red" if metrics.overdue else ""),
    )
    return table


def format_tasks(tasks: list[Task], output_format: str = "table") -> None:
    """Print tasks in the requested format."""
    if output_format in ("json", "yaml"):
        format_output(
            {"tasks": [t.model_dump(mode="json") for t in tasks]}, output_format
        )
        return
    if not tasks:
        console.print("[yellow]No tasks found[/yellow]")
        return
    console.print(build_tasks_table(tasks))


def format_metrics(metrics: TaskMetrics, output_format: str = "table") -> None:
    """Print metrics in the requested format."""
    if output_format in ("json", "yaml"):
        format_output(metrics.model_dump(mode="json"), output_format)
        return
    console.print(build_metrics_table(metrics))


def format_error(message: str) -> None:
    """Format and display an error message."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def format_success(message: str) -> None:
    """Format and display a success message."""
    console.print(f"[bold green]Success:[/bold green] {escape(message)}")


def format_warning(message: str) -> None:
    """Format and display a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {escape(message)}")


def format_info(message: str) -> None:
    """Format and display an info message."""
    console.print(f"[bold blue]Info:[/bold blue] {escape(message)}")
