"""Centralized Rich Console management.

Commands print summaries and status tables through one shared console so
output styling stays consistent across subcommands.
"""

from typing import Iterable, Tuple

from rich.console import Console
from rich.table import Table

_console: Console | None = None


def get_console() -> Console:
    """Get or create the global Rich Console instance.

    Returns:
        Console: The global Rich Console instance
    """
    global _console
    if _console is None:
        _console = Console()
    return _console


def safe_print(message: str, style: str | None = None) -> None:
    """Print using Rich Console with optional styling.

    Args:
        message: The message to print
        style: Optional Rich style string (e.g., "bold red", "green")
    """
    console = get_console()
    if style:
        console.print(message, style=style)
    else:
        console.print(message)


def print_summary(title: str, rows: Iterable[Tuple[str, object]]) -> None:
    """Print a two-column label/value table.

    Args:
        title: Table title
        rows: (label, value) pairs in display order
    """
    table = Table(title=title, show_header=False, box=None, pad_edge=False)
    table.add_column("label", style="bold")
    table.add_column("value", justify="right")
    for label, value in rows:
        table.add_row(label, str(value))
    get_console().print(table)
