"""Error display for verbose mode.

Renders rich panels on stderr so they never mix with anything a hook writes
to stdout.

Usage:
    from hookguard.core.error_handler import PipelineErrorHandler

    try:
        registry = HookRegistry.load(path)
    except HookRegistryError as e:
        PipelineErrorHandler.display_error(e, context="Hook registry")
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.traceback import Traceback

_console = Console(stderr=True)

COLORS = {
    "error": "#FF4444",
    "warning": "#FFB800",
    "info": "#00D26A",
    "muted": "#666666",
}

STDERR_EXCERPT_CHARS = 400


def _error_details(error: Exception) -> Text:
    from hookguard.core.hooks.types import HookExecutionError, HookRegistryError

    content = Text()
    content.append(f"{type(error).__name__}\n", style=f"bold {COLORS['error']}")

    if isinstance(error, HookExecutionError):
        content.append("Command: ", style=COLORS["muted"])
        content.append(f"{error.hook_command}\n", style="bold")
        if error.stderr:
            excerpt = error.stderr.strip()[:STDERR_EXCERPT_CHARS]
            content.append("stderr:\n", style=COLORS["muted"])
            content.append(f"{excerpt}\n", style="dim")
    elif isinstance(error, HookRegistryError):
        content.append("File: ", style=COLORS["muted"])
        content.append(f"{error.path}\n", style="bold")

    content.append(str(error), style=COLORS["muted"])
    return content


def _panel(body: Text, title: str, color: str, padding: tuple[int, int]) -> Panel:
    return Panel(
        body,
        title=f"[{color}]{title}[/{color}]",
        border_style=color,
        padding=padding,
    )


class PipelineErrorHandler:
    """Error, warning and info panels for the CLI.

    Every method takes an optional console and defaults to a shared stderr
    console, keeping stdout free for ``--json`` output.
    """

    @staticmethod
    def display_error(
        error: Exception,
        context: str = "Operation",
        show_traceback: bool = False,
        console: Console | None = None,
    ) -> None:
        """Display a formatted error panel.

        Args:
            error: The exception that occurred
            context: What was happening, e.g. "Hook registry"
            show_traceback: Whether to show the full traceback
            console: Optional custom console (stderr if not provided)
        """
        con = console or _console
        con.print(
            _panel(
                _error_details(error), f"{context} failed", COLORS["error"], (1, 2)
            )
        )

        if show_traceback and error.__traceback__:
            con.print(
                Traceback.from_exception(
                    type(error),
                    error,
                    error.__traceback__,
                    show_locals=False,
                    max_frames=10,
                )
            )

    @staticmethod
    def display_warning(
        message: str, context: str = "Warning", console: Console | None = None
    ) -> None:
        con = console or _console
        con.print(
            _panel(
                Text(message, style=COLORS["muted"]), context, COLORS["warning"], (0, 2)
            )
        )

    @staticmethod
    def display_info(
        message: str, context: str = "Info", console: Console | None = None
    ) -> None:
        con = console or _console
        con.print(
            _panel(Text(message, style=COLORS["muted"]), context, COLORS["info"], (0, 2))
        )

    @staticmethod
    def format_error_message(error: Exception, context: str = "Error") -> str:
        """Plain-text form of an error, for log records."""
        return f"[{context}] {type(error).__name__}: {error}"


__all__ = ["COLORS", "PipelineErrorHandler"]
