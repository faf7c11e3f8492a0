"""Watch command - live task view."""

import asyncio
from datetime import date

import typer
from rich.console import Group
from rich.live import Live
from rich.text import Text

from taskmate.models import TaskCriteria
from taskmate.services.config_service import get_config_service
from taskmate.services.sync_service import TaskSyncService
from taskmate.utils.logger import get_logger
from taskmate.utils.ui.console import get_console
from taskmate.utils.ui.formatters import (
    build_metrics_table,
    build_tasks_table,
    format_info,
)

from .decorators import command_wrapper
from .tasks import build_criteria, sync_session

app = typer.Typer()
console = get_console()


def render_view(service: TaskSyncService, today: date | None = None) -> Group:
    """Render metrics, the task table and a status line."""
    today = today or date.today()
    if service.loading:
        state = Text("loading…", style="dim")
    elif service.realtime_active:
        state = Text("● live", style="green")
    else:
        state = Text("○ polling", style="yellow")
    parts = [
        build_metrics_table(service.metrics),
        build_tasks_table(
            service.tasks,
            today=today,
            pending_ids=service.pending_ids,
            title=f"{len(service.tasks)} tasks",
        ),
        state,
    ]
    if service.last_error is not None:
        parts.append(Text(f"Error: {service.last_error.message}", style="bold red"))
    return Group(*parts)


async def run_watch(criteria: TaskCriteria, poll_interval: int) -> None:
    """Keep a live table on screen until cancelled.

    Change events drive updates while the feed is up; otherwise the view is
    reloaded every ``poll_interval`` seconds.
    """
    logger = get_logger("watch")
    async with sync_session(criteria, realtime=True) as service:
        with Live(render_view(service), console=console, auto_refresh=False) as live:
            remove = service.add_listener(
                lambda s: live.update(render_view(s), refresh=True)
            )
            try:
                while True:
                    await asyncio.sleep(poll_interval)
                    if not service.realtime_active:
                        logger.debug("polling refresh")
                        await service.refresh()
            finally:
                remove()


@app.command("watch")
@command_wrapper
def watch(
    status: str | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    search: str | None = typer.Option(None, "--search", help="Search in titles"),
    sort: str = typer.Option("created_at", "--sort", help="Sort column"),
    asc: bool = typer.Option(False, "--asc", help="Sort ascending"),
    interval: int | None = typer.Option(
        None, "--interval", min=1, help="Polling interval in seconds"
    ),
) -> None:
    """Show a live task table. Press Ctrl-C to stop."""
    criteria = build_criteria(status, search, sort, asc)
    poll_interval = (
        interval or get_config_service().effective_config().realtime.poll_interval
    )
    try:
        asyncio.run(run_watch(criteria, poll_interval))
    except KeyboardInterrupt:
        format_info("Stopped watching")
