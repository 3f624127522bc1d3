"""Main entry point for Taskboard CLI."""

from typing import Annotated

import typer

from taskboard_cli import __version__
from taskboard_cli.commands import config, data, tasks
from taskboard_cli.models.variants import VariantRegistry
from taskboard_cli.utils.typer_helpers import SuggestingGroup
from taskboard_cli.utils.ui.console import get_console
from taskboard_cli.utils.ui.formatters import format_output

app = typer.Typer(
    name="taskboard",
    cls=SuggestingGroup,
    help="Typed task management with variant-specific business rules",
    no_args_is_help=True,
)

console = get_console()

# Task and data commands live at the top level (taskboard add, taskboard stats, ...)
for sub_app in (tasks.app, data.app):
    for info in sub_app.registered_commands:
        app.command(info.name)(info.callback)

app.add_typer(config.app, name="config", help="Configuration management")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]Taskboard CLI[/bold] version [cyan]{__version__}[/cyan]")


@app.command()
def variants(
    output: Annotated[str, typer.Option("--output", "-o", help="Output format")] = "table",
) -> None:
    """List the registered task variants."""
    registry = VariantRegistry()
    rows = []
    for name in registry.names():
        capability = registry.get(name)
        rows.append(
            {
                "variant": name,
                "shape": capability.shape.__name__,
                "needs_due_date": capability.needs_due_date,
                "templates": sorted(capability.templates),
            }
        )
    format_output(rows, output)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
