"""Console output for the rixdrive CLI."""

from __future__ import annotations

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Render command results as rich text or as JSON.

    In JSON mode only :meth:`output_json` writes to stdout; status messages
    are suppressed so the output stays machine readable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def print(self, message: str) -> None:
        self.console.print(escape(message))

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(escape(message))

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        if self.json_output:
            return
        self.err_console.print(f"[yellow]Warning: {escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error: {escape(message)}[/red]")

    def format_size(self, size: int) -> str:
        return format_size(size)

    def output_json(self, data: Any) -> None:
        # Plain print so rich never re-wraps or colours the document
        print(json.dumps(data, indent=2, default=str))

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Print rows as a table with the given column order.

        Args:
            rows: One dict per row
            columns: Keys to show, in order
            headers: Optional display names for the columns
        """
        headers = headers or {}
        table = Table(show_header=True, header_style="bold", box=None)
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in rows:
            cells = [row.get(column) for column in columns]
            table.add_row(*(escape(str(c)) if c is not None else "" for c in cells))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of key/value lines."""
        if self.json_output:
            self.output_json({key: value for key, value in items})
            return
        if self.quiet:
            return
        self.console.print(f"\n[bold]{escape(title)}[/bold]")
        for key, value in items:
            self.console.print(f"  {escape(key)}: {escape(str(value))}")
