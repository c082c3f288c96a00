"""Console helpers shared by the tool CLIs."""

import functools
import sys
from typing import Any, Callable, Optional, TypeVar

import click
from rich.console import Console
from rich.table import Table

console = Console()

F = TypeVar("F", bound=Callable[..., Any])


def info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[cyan]{message}[/cyan]")


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓ {message}[/green]")


def warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗ {message}[/red]")


def create_table(title: Optional[str] = None) -> Table:
    """Create a table with the common style."""
    return Table(title=title, header_style="bold", show_lines=False)


def print_table(table: Table) -> None:
    """Render a table to the console."""
    console.print(table)


def handle_errors(func: F) -> F:
    """
    Report unexpected errors from a CLI command and exit non-zero.

    Click's own exceptions (usage errors, aborts, explicit exits) pass
    through untouched.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (click.exceptions.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except KeyboardInterrupt:
            error("Operation cancelled by user")
            sys.exit(130)
        except Exception as e:
            error(str(e))
            sys.exit(1)

    return wrapper  # type: ignore[return-value]
