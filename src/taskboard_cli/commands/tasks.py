"""Task commands: add, list, show, update and the status shortcuts."""

import json
from typing import Annotated, Any

import typer

from taskboard_cli.models.exceptions import ValidationFailed
from taskboard_cli.models.task import WorkTask
from taskboard_cli.services.context_manager import AppContext, open_app_context
from taskboard_cli.utils.typer_helpers import SuggestingGroup, parse_key_values
from taskboard_cli.utils.ui.console import get_console
from taskboard_cli.utils.ui.formatters import (
    format_info,
    format_output,
    format_result,
    format_task_detail,
    format_tasks,
    format_warning,
)

from .decorators import command_wrapper, exit_on_failure

app = typer.Typer(cls=SuggestingGroup, help="Task management commands")
console = get_console()

ProfileOption = Annotated[str, typer.Option("--profile", help="Profile name")]
OutputOption = Annotated[
    str | None, typer.Option("--output", "-o", help="Output format (table, json, yaml)")
]
SetOption = Annotated[
    list[str] | None,
    typer.Option("--set", "-s", help="Extra field as key=value (repeatable, JSON values allowed)"),
]


def parse_value(text: str) -> Any:
    """Interpret a ``--set`` value as JSON when possible, else as a string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _fields(pairs: list[str] | None) -> dict[str, Any]:
    return {key: parse_value(value) for key, value in parse_key_values(pairs).items()}


def _output(ctx: AppContext, output: str | None) -> str:
    return output or ctx.config.output.format


def _report_load_warnings(ctx: AppContext) -> None:
    for warning in ctx.repository.load_warnings:
        format_warning(warning)


@app.command("add")
@command_wrapper
async def add_task(
    title: Annotated[str, typer.Argument(help="Task title")],
    variant: Annotated[
        str | None,
        typer.Option("--variant", "-t", help="Task variant (detected from the data when omitted)"),
    ] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    priority: Annotated[str | None, typer.Option("--priority", "-p", help="low, medium or high")] = None,
    due: Annotated[str | None, typer.Option("--due", help="Due date (ISO-8601)")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", help="Tag (repeatable)")] = None,
    depends_on: Annotated[
        list[str] | None, typer.Option("--depends-on", help="Dependency task id (repeatable)")
    ] = None,
    template: Annotated[
        str | None, typer.Option("--template", help="Start from a variant template")
    ] = None,
    fields: SetOption = None,
    output: OutputOption = None,
    profile: ProfileOption = "default",
) -> None:
    """Create a task."""
    data: dict[str, Any] = {}
    async with open_app_context(profile) as ctx:
        _report_load_warnings(ctx)
        if template:
            if not variant:
                raise ValidationFailed(["--template requires --variant"])
            data.update(ctx.factory.template_data(variant, template))

        data["title"] = title
        optional = {
            "variant": variant,
            "description": description,
            "priority": priority,
            "due_date": due,
            "tags": (data.get("tags") or []) + tags if tags else None,
            "dependencies": depends_on or None,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        data.update(_fields(fields))

        result = await ctx.task_service.create_task(data)
        exit_on_failure(result)
        format_result(result)
        assert result.task is not None
        format_task_detail(result.task, ctx.registry, _output(ctx, output))


@app.command("list")
@command_wrapper
async def list_tasks(
    variant: Annotated[str | None, typer.Option("--variant", "-t")] = None,
    status: Annotated[str | None, typer.Option("--status")] = None,
    priority: Annotated[str | None, typer.Option("--priority", "-p")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", help="Require tag (repeatable)")] = None,
    search: Annotated[str | None, typer.Option("--search", help="Search title, description and tags")] = None,
    overdue: Annotated[bool, typer.Option("--overdue", help="Only overdue tasks")] = False,
    due_today: Annotated[bool, typer.Option("--due-today", help="Only tasks due today")] = False,
    due_within: Annotated[
        int | None, typer.Option("--due-within", help="Only active tasks due within N days")
    ] = None,
    unblocked: Annotated[
        bool, typer.Option("--unblocked", help="Only tasks whose dependencies are all completed")
    ] = False,
    sort: Annotated[str | None, typer.Option("--sort", help="e.g. priority-desc, due-date-asc")] = None,
    page: Annotated[int, typer.Option("--page", min=1)] = 1,
    page_size: Annotated[int | None, typer.Option("--page-size", min=1)] = None,
    output: OutputOption = None,
    profile: ProfileOption = "default",
) -> None:
    """List tasks with filters, sorting and pagination."""
    async with open_app_context(profile) as ctx:
        output_format = _output(ctx, output)
        if output_format == "table":
            _report_load_warnings(ctx)
        criteria: dict[str, Any] = {
            "variant": variant,
            "status": status,
            "priority": priority,
            "tags": tags or None,
            "search": search,
            "overdue": True if overdue else None,
        }
        sort_key = sort or ctx.config.output.sort
        try:
            tasks = ctx.task_service.list_tasks(criteria, sort_key)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--sort") from e

        if due_today:
            now = ctx.repository.now()
            tasks = [task for task in tasks if task.is_due_today(now)]
        if due_within is not None:
            now = ctx.repository.now()
            tasks = [task for task in tasks if task.is_due_within(due_within, now)]
        if unblocked:
            ready = {task.id for task in ctx.task_service.find_unblocked_tasks()}
            tasks = [task for task in tasks if task.id in ready]

        result_page = ctx.repository.paginate(tasks, page, page_size or ctx.config.output.page_size)
        format_tasks(result_page.items, ctx.registry, output_format)
        if output_format == "table" and result_page.pages > 1:
            format_info(f"Page {result_page.page} of {result_page.pages} ({result_page.total} tasks)")


@app.command("show")
@command_wrapper
async def show_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    output: OutputOption = None,
    profile: ProfileOption = "default",
) -> None:
    """Show task details."""
    async with open_app_context(profile) as ctx:
        task = ctx.task_service.get_task(task_id)
        format_task_detail(task, ctx.registry, _output(ctx, output))
        if task.is_active and _output(ctx, output) == "table":
            allowed, reasons = ctx.task_service.can_complete(task)
            if not allowed:
                for reason in reasons:
                    format_info(f"Cannot complete yet: {reason}")


@app.command("update")
@command_wrapper
async def update_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    title: Annotated[str | None, typer.Option("--title")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    priority: Annotated[str | None, typer.Option("--priority", "-p")] = None,
    status: Annotated[str | None, typer.Option("--status")] = None,
    progress: Annotated[int | None, typer.Option("--progress", help="0-100")] = None,
    due: Annotated[str | None, typer.Option("--due", help="Due date (ISO-8601)")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", help="Replace tags (repeatable)")] = None,
    fields: SetOption = None,
    output: OutputOption = None,
    profile: ProfileOption = "default",
) -> None:
    """Update task fields."""
    patch = {
        key: value
        for key, value in {
            "title": title,
            "description": description,
            "priority": priority,
            "status": status,
            "progress": progress,
            "due_date": due,
            "tags": tags,
        }.items()
        if value is not None
    }
    patch.update(_fields(fields))
    if not patch:
        raise typer.BadParameter("Nothing to update")

    async with open_app_context(profile) as ctx:
        result = await ctx.task_service.update_task(task_id, patch)
        exit_on_failure(result)
        format_result(result)
        output_format = _output(ctx, output)
        if output_format != "table":
            assert result.task is not None
            format_output(result.task.to_record(), output_format)


async def _change_status(profile: str, task_id: str, action: str) -> None:
    async with open_app_context(profile) as ctx:
        operation = getattr(ctx.task_service, f"{action}_task")
        result = await operation(task_id)
        exit_on_failure(result)
        format_result(result)


@app.command("start")
@command_wrapper
async def start_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    profile: ProfileOption = "default",
) -> None:
    """Move a task to in-progress."""
    await _change_status(profile, task_id, "start")


@app.command("complete")
@command_wrapper
async def complete_task(
    task_ids: Annotated[list[str], typer.Argument(help="Task ID(s) - can specify multiple")],
    profile: ProfileOption = "default",
) -> None:
    """Mark one or more tasks as completed."""
    if len(task_ids) == 1:
        await _change_status(profile, task_ids[0], "complete")
        return

    async with open_app_context(profile) as ctx:
        results = await ctx.task_service.bulk_complete_tasks(task_ids)
        failed = [(task_id, r) for task_id, r in zip(task_ids, results) if not r.success]
        for result in results:
            format_result(result)
        for task_id, result in failed:
            format_warning(f"{task_id}: {result.error}")
        console.print(f"[dim]{len(results) - len(failed)}/{len(results)} completed[/dim]")
        if failed:
            exit_on_failure(failed[0][1])


@app.command("reopen")
@command_wrapper
async def reopen_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    profile: ProfileOption = "default",
) -> None:
    """Reopen a completed task."""
    await _change_status(profile, task_id, "reopen")


@app.command("cancel")
@command_wrapper
async def cancel_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    profile: ProfileOption = "default",
) -> None:
    """Cancel a task."""
    await _change_status(profile, task_id, "cancel")


@app.command("delete")
@command_wrapper
async def delete_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    profile: ProfileOption = "default",
) -> None:
    """Delete a task."""
    async with open_app_context(profile) as ctx:
        task = ctx.task_service.get_task(task_id)
        if not yes and not typer.confirm(f"Delete '{task.title}'?"):
            format_info("Cancelled")
            return
        result = await ctx.task_service.delete_task(task_id)
        exit_on_failure(result)
        format_result(result)


@app.command("duplicate")
@command_wrapper
async def duplicate_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    profile: ProfileOption = "default",
) -> None:
    """Copy a task as a new pending task."""
    async with open_app_context(profile) as ctx:
        result = await ctx.task_service.duplicate_task(task_id)
        exit_on_failure(result)
        format_result(result)
        assert result.task is not None
        console.print(f"[dim]New task: {result.task.id}[/dim]")


@app.command("approve")
@command_wrapper
async def approve_task(
    task_id: Annotated[str, typer.Argument(help="Work task ID")],
    approver: Annotated[str, typer.Option("--by", help="Name of the approver")],
    profile: ProfileOption = "default",
) -> None:
    """Record approval of a work task."""
    async with open_app_context(profile) as ctx:
        if not isinstance(ctx.task_service.get_task(task_id), WorkTask):
            raise ValidationFailed(["Only work tasks can be approved"])
        now = ctx.repository.now()
        result = await ctx.task_service.update_task(
            task_id, {"approved_by": approver, "approved_at": now}
        )
        exit_on_failure(result)
        format_result(result)


@app.command("templates")
@command_wrapper
async def list_templates(
    variant: Annotated[str | None, typer.Option("--variant", "-t")] = None,
    output: OutputOption = None,
    profile: ProfileOption = "default",
) -> None:
    """List the task templates of each variant."""
    async with open_app_context(profile) as ctx:
        rows = [
            {"variant": name, "template": template, "title": data.get("title", "")}
            for name, templates in ctx.factory.templates(variant).items()
            for template, data in templates.items()
        ]
        format_output(rows, _output(ctx, output))
