"""Output formatters for tasks, statistics and plain data."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import yaml
from rich.table import Table

from taskboard_cli.models.results import OperationResult, TaskStats
from taskboard_cli.models.task import TaskRecord
from taskboard_cli.models.variants import VariantRegistry

from .console import get_console

console = get_console()

OUTPUT_FORMATS = ("table", "json", "yaml")

PRIORITY_COLORS = {"high": "red", "medium": "yellow", "low": "green"}
STATUS_ICONS = {
    "pending": "○",
    "in-progress": "◐",
    "completed": "●",
    "cancelled": "✗",
}


def format_output(data: Any, output_format: str = "table") -> None:
    """Format and display plain data (dicts and lists) in the requested format."""
    if output_format == "json":
        print(json.dumps(data, indent=2, default=str, ensure_ascii=False))
    elif output_format == "yaml":
        print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True))
    else:
        format_table(data)


def format_table(data: Any) -> None:
    """Format data as a table."""
    if not data:
        console.print("[yellow]No data to display[/yellow]")
        return

    if isinstance(data, list):
        if isinstance(data[0], dict):
            format_dict_table(data)
        else:
            for item in data:
                console.print(item)
    elif isinstance(data, dict):
        format_single_item(data)
    else:
        console.print(data)


def _cell(value: Any) -> str:
    if isinstance(value, bool):
        return "✓" if value else "✗"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items())
    if value is None:
        return "-"
    return str(value)


def format_dict_table(items: list[dict]) -> None:
    """Format a list of dictionaries as a table."""
    if not items:
        console.print("[yellow]No items found[/yellow]")
        return

    columns = list(items[0].keys())
    table = Table(show_header=True, header_style="bold magenta")
    for col in columns:
        table.add_column(col.replace("_", " ").title())
    for item in items:
        table.add_row(*(_cell(item.get(col)) for col in columns))

    console.print(table)


def format_single_item(item: dict) -> None:
    """Format a single item as key-value pairs."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    for key, value in item.items():
        table.add_row(key.replace("_", " ").title(), _cell(value))

    console.print(table)


def format_error(message: str) -> None:
    """Format and display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def format_success(message: str) -> None:
    """Format and display a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def format_warning(message: str) -> None:
    """Format and display a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_info(message: str) -> None:
    """Format and display an info message."""
    console.print(f"[bold blue]Info:[/bold blue] {message}")


# ============================================================================
# Task rendering
# ============================================================================


def format_due_date(date: datetime | None) -> str:
    """Format a due date as ``HH:MM DD/MM Day`` (year added when not current)."""
    if date is None:
        return ""
    if date.tzinfo is None:
        date = date.replace(tzinfo=UTC)
    day_str = date.strftime("%d/%m")
    if date.year != datetime.now(UTC).year:
        day_str = date.strftime("%d/%m/%Y")
    return f"{date.strftime('%H:%M')} {day_str} {date.strftime('%a')}"


def get_progress_bar(percentage: float) -> str:
    """Get a progress bar representation."""
    filled = int(percentage / 10)
    return "▓" * filled + "░" * (10 - filled)


def task_summary(task: TaskRecord) -> dict[str, Any]:
    """Compact row used by list output in every format."""
    return {
        "id": task.id,
        "title": task.title,
        "variant": task.variant,
        "status": task.status,
        "priority": task.priority,
        "progress": task.progress,
        "due": format_due_date(task.due_date),
    }


def format_tasks(
    tasks: list[TaskRecord],
    registry: VariantRegistry,
    output_format: str = "table",
    title: str | None = None,
) -> None:
    """Display a list of tasks.

    JSON and YAML output use the plain-record shape so it can be re-imported.
    """
    if output_format != "table":
        format_output([task.to_record() for task in tasks], output_format)
        return
    if not tasks:
        console.print("[yellow]No tasks found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta", title=title)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Progress")
    table.add_column("Due")

    for task in tasks:
        info = registry.describe(task)
        color = PRIORITY_COLORS[task.priority]
        table.add_row(
            task.id,
            info.icon,
            task.title,
            f"{STATUS_ICONS[task.status]} {task.status}",
            f"[{color}]{task.priority}[/{color}]",
            f"{get_progress_bar(task.progress)} {task.progress}%",
            format_due_date(task.due_date),
        )

    console.print(table)


def format_task_detail(
    task: TaskRecord, registry: VariantRegistry, output_format: str = "table"
) -> None:
    """Display one task with its variant badges and details."""
    if output_format != "table":
        format_output(task.to_record(), output_format)
        return

    info = registry.describe(task)
    console.print(f"\n{info.icon} [bold {info.color}]{task.title}[/bold {info.color}]")
    console.print(f"[dim]{task.id} · {info.label}[/dim]")
    if info.badges:
        console.print(" ".join(f"[reverse] {badge} [/reverse]" for badge in info.badges))
    console.print()

    rows: dict[str, Any] = {
        "status": f"{STATUS_ICONS[task.status]} {task.status}",
        "priority": task.priority,
        "progress": f"{get_progress_bar(task.progress)} {task.progress}%",
        "due": format_due_date(task.due_date) or None,
        "tags": task.tags,
        "description": task.description or None,
        "notes": task.notes or None,
        **info.details,
        "created": task.created_at.isoformat(),
        "updated": task.updated_at.isoformat(),
    }
    if task.completed_at:
        rows["completed"] = task.completed_at.isoformat()
    format_single_item(rows)


def format_result(result: OperationResult) -> None:
    """Display warnings and the message of a successful operation."""
    for warning in result.warnings:
        format_warning(warning)
    if result.success:
        format_success(result.message)
        for task in result.unblocked:
            format_info(f"Unblocked: {task.title} ({task.id})")


def format_stats(stats: TaskStats, output_format: str = "table") -> None:
    """Display collection statistics."""
    if output_format != "table":
        format_output(stats.model_dump(by_alias=True), output_format)
        return

    console.print("\n[bold cyan]📊 Task Statistics[/bold cyan]\n")
    console.print(f"Total: [bold]{stats.total}[/bold]")
    console.print(
        f"Completed: [bold]{stats.completed}[/bold] "
        f"({get_progress_bar(stats.completion_rate)} {stats.completion_rate}%)"
    )
    console.print(
        f"Overdue: [red]{stats.overdue}[/red]  "
        f"Due today: [yellow]{stats.due_today}[/yellow]  "
        f"Due this week: {stats.due_this_week}"
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Group")
    table.add_column("Value")
    table.add_column("Count", justify="right")
    for group, counts in (
        ("status", stats.by_status),
        ("priority", stats.by_priority),
        ("variant", stats.by_type),
    ):
        for value, count in counts.items():
            table.add_row(group, value, str(count))
    console.print(table)
