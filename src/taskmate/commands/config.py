"""Configuration management commands."""

import typer

from taskmate.errors import ValidationError
from taskmate.services.config_service import get_config_service, resolve_output_format
from taskmate.utils.ui.console import get_console
from taskmate.utils.ui.formatters import format_info, format_output, format_success

from .decorators import command_wrapper

app = typer.Typer(help="Configuration management commands")
console = get_console()


def _mask(key: str) -> str:
    if not key:
        return ""
    return key[:4] + "…" if len(key) > 8 else "****"


def parse_value(value: str) -> str | int | bool:
    """Turn ``true``/``false`` and digit strings into bool and int."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit():
        return int(value)
    return value


@app.command("show")
@command_wrapper
def show_config(
    output: str | None = typer.Option(
        None, "--output", "-o", help="Output format (table, json, yaml)"
    ),
    effective: bool = typer.Option(
        False, "--effective", help="Apply environment overrides"
    ),
) -> None:
    """Show the current configuration. The API key is masked."""
    output = resolve_output_format(output)
    service = get_config_service()
    config = service.effective_config() if effective else service.config
    config_dict = config.model_dump()
    config_dict["store"]["key"] = _mask(config.store.key)
    if output in ("json", "yaml"):
        format_output(config_dict, output)
        return
    for section, values in config_dict.items():
        console.print(f"[bold cyan]{section}[/bold cyan]")
        format_output(values)


@app.command("get")
@command_wrapper
def get_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., store.url)"),
) -> None:
    """Get a configuration value."""
    value = get_config_service().get(key)
    if value is None:
        raise ValidationError(f"Configuration key '{key}' not found")
    if key == "store.key":
        value = _mask(value)
    console.print(value)


@app.command("set")
@command_wrapper
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., store.url)"),
    value: str = typer.Argument(..., help="Configuration value"),
) -> None:
    """Set a configuration value."""
    parsed = value if key == "store.key" else parse_value(value)
    get_config_service().set(key, parsed)
    shown = _mask(value) if key == "store.key" else parsed
    format_success(f"Configuration '{key}' set to '{shown}'")


@app.command("reset")
@command_wrapper
def reset_config(
    key: str | None = typer.Argument(None, help="Configuration key to reset"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Reset configuration to defaults."""
    if not yes:
        target = f"'{key}'" if key else "the entire configuration"
        if not typer.confirm(f"Are you sure you want to reset {target}?"):
            format_info("Cancelled")
            raise typer.Exit(0)

    get_config_service().reset(key)
    if key:
        format_success(f"Configuration '{key}' reset to default")
    else:
        format_success("Configuration reset to defaults")
