"""Console utilities for Taskboard CLI."""

from functools import lru_cache

from rich.console import Console


@lru_cache(maxsize=4)
def get_console(highlight: bool = True, color: bool = True) -> Console:
    """Get a shared Rich Console.

    Args:
        highlight: Enable Rich's automatic highlighting
        color: False strips colour markup (``output.color`` in the config)
    """
    return Console(highlight=highlight, no_color=not color)
