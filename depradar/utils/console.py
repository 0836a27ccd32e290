"""
Console output utilities for depradar using Rich.

User-facing output for CLI commands goes through this module; diagnostics
go through :mod:`depradar.utils.logger`.  Dependency statuses and advisory
severities are styled through named theme entries (``status.major``,
``severity.high`` …) so every renderer colors them the same way.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, List, Optional

from rich.table import Table
from rich.theme import Theme
from rich.console import Console

from depradar.models import Severity, Status

# ---------------------------------------------------------------------------
# Theme configuration
# ---------------------------------------------------------------------------

_STATUS_STYLES: Dict[Status, str] = {
    Status.MAJOR: "bold red",
    Status.OUTDATED: "yellow",
    Status.CURRENT: "green",
}

_SEVERITY_STYLES: Dict[Severity, str] = {
    Severity.CRITICAL: "bold white on red",
    Severity.HIGH: "bold red",
    Severity.MODERATE: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
}

DEPRADAR_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "info": "bold cyan",
        **{f"status.{s.value}": style for s, style in _STATUS_STYLES.items()},
        **{f"severity.{s.value}": style for s, style in _SEVERITY_STYLES.items()},
    }
)

# ---------------------------------------------------------------------------
# Console lifecycle management
# ---------------------------------------------------------------------------

_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    """Return True if colored output should be enabled."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def _get_console() -> Console:
    """Return the process-wide Rich Console, creating it on first use."""
    global _console

    if _console is None:
        with _console_lock:
            if _console is None:
                use_color = _should_use_color()
                _console = Console(
                    theme=DEPRADAR_THEME,
                    no_color=not use_color,
                    highlight=use_color,
                )
    return _console


def reconfigure_console() -> None:
    """Drop the cached console so the next call re-reads the environment."""
    global _console
    with _console_lock:
        _console = None


def get_raw_console() -> Console:
    """Return the underlying Rich Console instance."""
    return _get_console()


# ---------------------------------------------------------------------------
# Status message helpers
# ---------------------------------------------------------------------------


def print_success(message: str, *, prefix: str = "[OK]") -> None:
    """Print a success message."""
    _get_console().print(f"{prefix} {message}", style="success")


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    """Print an error message."""
    _get_console().print(f"{prefix} {message}", style="error")


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    """Print a warning message."""
    _get_console().print(f"{prefix} {message}", style="warning")


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------


def print_table(
    data: List[Dict[str, Any]],
    *,
    headers: Optional[List[str]] = None,
    title: Optional[str] = None,
    caption: Optional[str] = None,
    column_styles: Optional[Dict[str, Dict[str, Any]]] = None,
    show_row_lines: bool = False,
) -> None:
    """Render report rows as a Rich table.

    Args:
        data: List of row dictionaries; values may contain Rich markup.
        headers: Column order. Defaults to keys of the first row.
        title: Table title, usually the ecosystem and manifest name.
        caption: Summary line printed under the table.
        column_styles: Per-column options (``style``, ``justify``,
            ``no_wrap``, ``width``, ``overflow``).
        show_row_lines: Draw a rule between rows, for multi-line cells.
    """
    if not data:
        return

    headers = headers or list(data[0])
    column_styles = column_styles or {}

    table = Table(
        title=title,
        caption=caption,
        header_style="bold",
        show_lines=show_row_lines,
    )
    for header in headers:
        options = column_styles.get(header, {})
        table.add_column(
            header,
            style=options.get("style"),
            justify=options.get("justify", "default"),
            no_wrap=options.get("no_wrap", False),
            width=options.get("width"),
            overflow=options.get("overflow", "fold"),
        )

    for row in data:
        table.add_row(*(str(row.get(h, "")) for h in headers))

    _get_console().print(table)


# ---------------------------------------------------------------------------
# Markup helpers
# ---------------------------------------------------------------------------


def colorize_status(status: str) -> str:
    """Return Rich markup for a dependency status label.

    Args:
        status: ``current``, ``outdated`` or ``major``.

    Returns:
        Rich markup string; unknown labels are returned unchanged.
    """
    key = status.lower()
    if key not in {s.value for s in Status}:
        return status
    return f"[status.{key}]{status}[/status.{key}]"


def colorize_severity(severity: str) -> str:
    key = severity.lower()
    if key not in {s.value for s in Severity}:
        return severity
    return f"[severity.{key}]{severity}[/severity.{key}]"
