"""Rich-based output utilities for the sshkm CLI.

Results go to stdout; errors and status chatter go to stderr so that
`eval "$(sshkm env)"` only ever sees assignments.
"""

from rich.console import Console
from rich.markup import escape

# Shared console instances
console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message in red."""
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)


def print_warning(message: str) -> None:
    err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)


def print_info(message: str) -> None:
    """Print an informational message."""
    err_console.print(f"[dim]{escape(message)}[/dim]", highlight=False)


def print_success(message: str) -> None:
    console.print(f"[green]{escape(message)}[/green]", highlight=False)


def print_plain(text: str) -> None:
    """Print text verbatim: no markup, highlighting or wrapping."""
    console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)
