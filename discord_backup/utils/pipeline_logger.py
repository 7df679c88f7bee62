"""Base pipeline logger with shared components.

Provides reusable building blocks for pipeline loggers:
- StructuredBlock: Context manager for key-value style output
- BasePipelineLogger: Abstract base with common logging methods
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Generator

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from discord_backup.utils.logging import console

if TYPE_CHECKING:
    from typing import Self

CLEAR_LINE = "\033[2K"


class StructuredBlock:
    """A context manager for displaying structured key-value info blocks.

    Usage:
        with logger.block("general") as block:
            block.field("channel ID", 123456789)
            block.field("category", "Text Channels")
            # ... fetch history, harvest ...
            block.result("archived 1,234 messages")

    Output:
        general
            channel ID: 123456789
            category: Text Channels
            ✓ archived 1,234 messages
    """

    def __init__(self, title: str, parent: "BasePipelineLogger") -> None:
        self.title = title
        self.console = parent.console
        self._parent = parent

    def __enter__(self) -> "Self":
        self._parent._clear_progress_line()
        self.console.print(f"\n[bold]{self.title}[/bold]")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._parent._clear_progress_line()

    def field(self, key: str, value: Any, color: str | None = None) -> None:
        """Add a key-value field to the block."""
        if color:
            self.console.print(f"    [dim]{key}:[/dim] [{color}]{value}[/{color}]")
        else:
            self.console.print(f"    [dim]{key}:[/dim] {value}")

    def progress(self, message: str) -> None:
        """Show an inline progress update (will be overwritten)."""
        print(CLEAR_LINE, end="")
        self.console.print(f"    [dim]{message}[/dim]", end="\r")
        self._parent._has_progress_line = True

    def result(self, message: str, success: bool = True) -> None:
        """Show the final result of the block."""
        self._parent._clear_progress_line()
        icon = "[green]✓[/green]" if success else "[red]✗[/red]"
        self.console.print(f"    {icon} {message}")

    def warn(self, message: str) -> None:
        """Show a non-fatal problem inside the block."""
        self._parent._clear_progress_line()
        self.console.print(f"    [yellow]![/yellow] {message}")

    def skip(self, reason: str) -> None:
        """Show that this block was skipped."""
        self._parent._clear_progress_line()
        self.console.print(f"    [dim]Skipped: {reason}[/dim]")

    def empty(self) -> None:
        """Show that this block had no content to process."""
        self._parent._clear_progress_line()
        self.console.print("    [dim]Empty[/dim]")


class BasePipelineLogger(ABC):
    """Abstract base class for pipeline loggers.

    Provides common functionality:
    - Shared console instance
    - Progress line management
    - Standard logging methods (info, warning, error, debug)
    - Structured block context manager
    - Summary panel

    Subclasses implement pipeline-specific methods like summary().
    """

    def __init__(self, logger_name: str | None = None) -> None:
        self.console: Console = console
        self._has_progress_line = False
        self._logger = logging.getLogger(logger_name or self.__class__.__module__)

    def _clear_progress_line(self) -> None:
        """Clear the in-place progress line if present."""
        if self._has_progress_line:
            print(CLEAR_LINE, end="\r")
            self._has_progress_line = False

    @contextmanager
    def block(self, title: str) -> Generator[StructuredBlock, None, None]:
        """Create a structured block for key-value style output."""
        block = StructuredBlock(title, self)
        with block:
            yield block

    # -------------------------------------------------------------------------
    # Standard Logging (goes through Python logging)
    # -------------------------------------------------------------------------

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def success(self, message: str) -> None:
        """Log a success message with green checkmark."""
        self.console.print(f"[green]✓[/green] {message}")

    # -------------------------------------------------------------------------
    # Common Rich Output Methods
    # -------------------------------------------------------------------------

    def batch_progress(
        self,
        count: int,
        *,
        oldest_date: str | None = None,
        prefix: str = "Fetched",
        unit: str = "messages",
    ) -> None:
        """Log batch progress as an inline, self-overwriting line."""
        date_info = f" [→ {oldest_date}]" if oldest_date else ""
        print(CLEAR_LINE, end="")
        self.console.print(
            f"    [dim]{prefix} {count:,} {unit}{date_info}[/dim]",
            end="\r",
        )
        self._has_progress_line = True

    def print_summary(
        self,
        pipeline_name: str,
        *,
        elapsed: float,
        stats: dict[str, int | str],
        style: str = "cyan",
    ) -> None:
        """Print a summary panel of {label: value} rows plus elapsed time."""
        self._clear_progress_line()
        self.console.print()

        table = Table.grid(padding=(0, 2))
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right", style="green")

        for label, value in stats.items():
            table.add_row(label, f"{value:,}" if isinstance(value, int) else str(value))
        table.add_row("Time elapsed", f"{elapsed:.1f}s")

        self.console.print(
            Panel(
                table,
                title=f"[bold]{pipeline_name}[/bold]",
                border_style=style,
                padding=(1, 2),
            )
        )

    @abstractmethod
    def summary(self, **kwargs: Any) -> None:
        """Print final summary. Implementation varies by pipeline."""
        ...
