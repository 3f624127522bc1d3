"""Data commands: statistics, export, import and clearing the collection."""

from pathlib import Path
from typing import Annotated

import typer

from taskboard_cli.services.context_manager import open_app_context
from taskboard_cli.utils.typer_helpers import SuggestingGroup
from taskboard_cli.utils.ui.console import get_console
from taskboard_cli.utils.ui.formatters import (
    format_info,
    format_output,
    format_stats,
    format_success,
    format_warning,
)

from .decorators import command_wrapper

app = typer.Typer(cls=SuggestingGroup, help="Data management (stats, import, export, clear)")
console = get_console()


@app.command("stats")
@command_wrapper
async def show_stats(
    output: Annotated[str | None, typer.Option("--output", "-o", help="Output format")] = None,
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """Show task statistics."""
    async with open_app_context(profile) as ctx:
        format_stats(ctx.task_service.get_stats(), output or ctx.config.output.format)


@app.command("export")
@command_wrapper
async def export_data(
    file: Annotated[
        Path | None, typer.Option("--file", "-f", help="Write to a file instead of stdout")
    ] = None,
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """Export every task as a JSON array of plain records."""
    async with open_app_context(profile) as ctx:
        if file is None:
            print(ctx.data_service.export_json())
            return
        count = await ctx.data_service.export_to_file(file)
        format_success(f"Exported {count} task(s) to {file}")


@app.command("import")
@command_wrapper
async def import_data(
    file: Annotated[Path, typer.Argument(help="JSON file produced by export")],
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """Import tasks from a JSON export; every task receives a new id."""
    async with open_app_context(profile) as ctx:
        result = await ctx.data_service.import_from_file(file)
        for error in result.errors:
            format_warning(error)
        format_success(f"Imported {result.imported_count} task(s)")
        if result.errors:
            format_info(f"{len(result.errors)} record(s) skipped")


@app.command("clear")
@command_wrapper
async def clear_data(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """Delete every task."""
    if not yes and not typer.confirm("Delete ALL tasks? This cannot be undone"):
        format_info("Cancelled")
        return
    async with open_app_context(profile) as ctx:
        count = await ctx.repository.clear()
        format_success(f"Deleted {count} task(s)")


@app.command("health")
@command_wrapper
async def show_health(
    output: Annotated[str, typer.Option("--output", "-o", help="Output format")] = "table",
    profile: Annotated[str, typer.Option("--profile", help="Profile name")] = "default",
) -> None:
    """Show storage diagnostics."""
    async with open_app_context(profile) as ctx:
        format_output(ctx.repository.get_health(), output)
