"""
Rich logging handler for codepedagogy.

This module provides a logging.Handler implementation that formats session
events using Rich console output. This keeps the execution loop
(ExerciseSession) separate from presentation (RichHandler).
"""

import logging

from rich.console import Console
from rich.panel import Panel


class RichHandler(logging.Handler):
    """
    Logging handler that formats session events with Rich console output.

    The session logs events by name (record.msg) with details as extra
    fields; this handler dispatches on the event name.
    """

    def __init__(self, console: Console | None = None, show_output: bool = True):
        super().__init__()
        self.console = console or Console()
        self.show_output = show_output

    def emit(self, record: logging.LogRecord):
        try:
            if record.msg == "stage_entered":
                self._handle_stage_entered(record)
            elif record.msg == "stage_reset":
                self._handle_stage_reset(record)
            elif record.msg == "cell_executed":
                self._handle_cell_executed(record)
            elif record.msg == "cell_validated":
                self._handle_cell_validated(record)
            elif record.msg == "stage_completed":
                self._handle_stage_completed(record)
            else:
                # Fallback for unknown events
                self.console.print(f"[dim]{record.getMessage()}[/dim]")
        except Exception:
            # Don't let logging errors crash the application
            self.handleError(record)

    def _handle_stage_entered(self, record: logging.LogRecord):
        stage_id = getattr(record, "stage_id", "?")
        title = getattr(record, "title", "")
        mode = getattr(record, "mode", "")
        self.console.rule(f"[bold]Stage {stage_id}[/bold] {title}", style="blue")
        self.console.print(f"[dim]Mode: {mode}[/dim]")

    def _handle_stage_reset(self, record: logging.LogRecord):
        stage_id = getattr(record, "stage_id", "?")
        self.console.print(f"[yellow]↺ Stage {stage_id} reset[/yellow]")

    def _handle_cell_executed(self, record: logging.LogRecord):
        cell_index = getattr(record, "cell_index", 0)
        success = getattr(record, "success", False)
        output = getattr(record, "output", "")
        error = getattr(record, "error", None)

        color = "green" if success else "red"
        symbol = "✓" if success else "✗"
        self.console.print(f"[{color}]{symbol}[/{color}] [yellow]Cell {cell_index + 1}[/yellow]")

        if error:
            self.console.print(Panel(error, title="[red]Error[/red]", border_style="red"))
        elif self.show_output and output.strip():
            self.console.print(Panel(output.rstrip(), title="Output", border_style="dim"))

    def _handle_cell_validated(self, record: logging.LogRecord):
        passed = getattr(record, "passed", False)
        strategy = getattr(record, "strategy", "none")
        diagnostic = getattr(record, "diagnostic", None)

        if passed:
            self.console.print(f"[green]Completed[/green] [dim](matched by {strategy})[/dim]")
        elif diagnostic is not None:
            self.console.print(f"[red]Not yet:[/red] {diagnostic.message}")
        else:
            self.console.print("[red]Not yet[/red]")

    def _handle_stage_completed(self, record: logging.LogRecord):
        stage_id = getattr(record, "stage_id", "?")
        self.console.print(f"\n[bold green]✓ Stage {stage_id} complete[/bold green]")


def create_rich_logger(name: str = "codepedagogy.session", console: Console | None = None) -> logging.Logger:
    """Logger wired to a RichHandler, for interactive hosts."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.addHandler(RichHandler(console=console))
    logger.propagate = False
    return logger
