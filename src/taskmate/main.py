"""Main entry point for the TaskMate CLI."""

import typer

from taskmate import __version__
from taskmate.commands import config, tasks, watch
from taskmate.services.config_service import get_config_service
from taskmate.utils.typer_helpers import SuggestingGroup
from taskmate.utils.ui.console import apply_color_setting, get_console

app = typer.Typer(
    name="taskmate",
    cls=SuggestingGroup,
    help="Manage a shared task list from the terminal",
    no_args_is_help=True,
)

console = get_console()

# Task verbs live at the top level: taskmate list, taskmate add, ...
app.add_typer(tasks.app)
app.add_typer(watch.app)
app.add_typer(config.app, name="config", help="Configuration management")


@app.callback()
def root() -> None:
    apply_color_setting(get_config_service().effective_config().output.color)


@app.command()
def version() -> None:
    """Show version information and the configured store."""
    console.print(f"[bold]TaskMate[/bold] version [cyan]{__version__}[/cyan]")
    store = get_config_service().effective_config().store
    if store.is_configured:
        console.print(f"Store: [green]{store.url}[/green] (table {store.table})")
    else:
        console.print("[yellow]Store not configured[/yellow]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
