"""Decorators and shared helpers for command functions."""

import asyncio
import functools
import time
import traceback
from collections.abc import Callable

import click
import typer

from taskboard_cli.models.exceptions import TaskboardError
from taskboard_cli.models.results import OperationResult
from taskboard_cli.utils.exit_codes import exit_code_for, exit_code_for_result_code
from taskboard_cli.utils.logger import get_logger
from taskboard_cli.utils.ui.formatters import format_error, format_warning


def command_wrapper(func: Callable):
    """Run sync or async commands, log them and turn errors into exit codes."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger()
        cmd = func.__name__
        start = time.monotonic()
        logger.info("command started: %s", cmd)
        try:
            if asyncio.iscoroutinefunction(func):
                result = asyncio.run(func(*args, **kwargs))
            else:
                result = func(*args, **kwargs)

            elapsed = time.monotonic() - start
            logger.info("command completed: %s (%.3fs)", cmd, elapsed)
            return result

        except TaskboardError as e:
            elapsed = time.monotonic() - start
            logger.error("command failed: %s (%.3fs) - [%s] %s", cmd, elapsed, e.code, e.message)
            format_error(e.message)
            raise typer.Exit(code=exit_code_for(e)) from e

        except (typer.Exit, typer.Abort, click.ClickException):
            # Typer exits and usage errors (--help, Exit(0), BadParameter)
            raise

        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "command failed: %s (%.3fs) - %s\n%s",
                cmd,
                elapsed,
                str(e),
                traceback.format_exc(),
            )
            format_error(f"An unexpected error occurred: {str(e)}")
            raise typer.Exit(code=1) from e

    return wrapper


def exit_on_failure(result: OperationResult) -> None:
    """Report a rejected operation and exit with its code."""
    if result.success:
        return
    for warning in result.warnings:
        format_warning(warning)
    format_error(result.error or "Operation failed")
    raise typer.Exit(code=exit_code_for_result_code(result.code))
