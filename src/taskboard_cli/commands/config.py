"""Configuration management commands."""

from typing import Annotated, Optional

import typer
from pydantic import ValidationError

from taskboard_cli.config import get_config_manager
from taskboard_cli.utils.exit_codes import ERROR_INVALID_ARGS
from taskboard_cli.utils.ui.console import get_console
from taskboard_cli.utils.ui.formatters import format_error, format_output, format_success

from .decorators import command_wrapper

app = typer.Typer(help="Configuration management commands")
console = get_console()


def parse_config_value(value: str) -> str | int | bool | None:
    """Convert a command-line string to bool, int or None where it looks like one."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    if value.isdigit():
        return int(value)
    return value


@app.command("show")
@command_wrapper
def show_config(
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
    output: Annotated[str, typer.Option("--output", "-o", help="Output format")] = "table",
) -> None:
    """Show the current configuration."""
    config_manager = get_config_manager(profile)
    format_output(config_manager.config.model_dump(), output)


@app.command("get")
@command_wrapper
def get_config(
    key: Annotated[str, typer.Argument(help="Configuration key (e.g., storage.backend)")],
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """Get a configuration value."""
    config_manager = get_config_manager(profile)
    value = config_manager.get(key)
    if value is None:
        format_error(f"Configuration key '{key}' not found")
        raise typer.Exit(ERROR_INVALID_ARGS)
    console.print(value)


@app.command("set")
@command_wrapper
def set_config(
    key: Annotated[str, typer.Argument(help="Configuration key (e.g., rules.max_tasks)")],
    value: Annotated[str, typer.Argument(help="Configuration value")],
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """Set a configuration value."""
    config_manager = get_config_manager(profile)
    parsed_value = parse_config_value(value)
    try:
        config_manager.set(key, parsed_value)
    except KeyError as e:
        format_error(f"Unknown configuration key '{key}'")
        raise typer.Exit(ERROR_INVALID_ARGS) from e
    except ValidationError as e:
        format_error(f"Invalid value for '{key}': {e.errors()[0]['msg']}")
        raise typer.Exit(ERROR_INVALID_ARGS) from e
    format_success(f"Configuration '{key}' set to '{parsed_value}'")


@app.command("reset")
@command_wrapper
def reset_config(
    key: Annotated[Optional[str], typer.Argument(help="Configuration key to reset")] = None,
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Reset configuration to defaults."""
    if not yes:
        msg = "entire configuration" if not key else f"'{key}'"
        if not typer.confirm(f"Are you sure you want to reset {msg}?"):
            format_error("Cancelled")
            raise typer.Exit(0)

    config_manager = get_config_manager(profile)
    config_manager.reset(key)

    if key:
        format_success(f"Configuration '{key}' reset to default")
    else:
        format_success("Configuration reset to defaults")


@app.command("profiles")
@command_wrapper
def list_profiles(
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """List all configuration profiles."""
    profiles = get_config_manager(profile).list_profiles()
    if not profiles:
        console.print("[yellow]No profiles found[/yellow]")
        return
    for prof in sorted(profiles):
        marker = " *" if prof == profile else ""
        console.print(f"{prof}{marker}")
