"""Console output helpers built on rich."""

from collections.abc import Sequence
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Formats user-facing messages for the command line.

    Messages are printed literally, so remote names such as "old[/]" are
    never read as rich markup.
    """

    def __init__(
        self,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            quiet: Suppress everything except errors and warnings
            console: Console for regular output (default: stdout)
            err_console: Console for errors (default: stderr)
        """
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def info(self, message: str) -> None:
        if not self.quiet:
            self.console.print(escape(message))

    def success(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[green]✓[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]{escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def print_summary(self, title: str, items: Sequence[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self.quiet:
            return
        self.console.print(f"\n[bold]{escape(title)}[/bold]")
        width = max((len(label) for label, _ in items), default=0)
        for label, value in items:
            self.console.print(f"  {escape(label.ljust(width))}  {escape(value)}")

    def print_table(
        self, columns: Sequence[str], rows: Sequence[Sequence[str]], title: str = ""
    ) -> None:
        """Print rows as a rich table."""
        if self.quiet:
            return
        table = Table(title=escape(title) if title else None)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(escape(cell) for cell in row))
        self.console.print(table)
