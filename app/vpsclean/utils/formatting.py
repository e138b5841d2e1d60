"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

import sys

from rich.console import Console

from vpsclean.core.theme import get_theme

_UNITS: tuple[tuple[str, int], ...] = (
    ("TB", 1024**4),
    ("GB", 1024**3),
    ("MB", 1024**2),
    ("KB", 1024),
)


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def format_size(size_bytes: int | None) -> str:
    """Format a byte count as a human-readable string.

    Negative and missing values are shown as zero.

    Examples:
        >>> format_size(1024)
        '1.00 KB'
        >>> format_size(1572864)
        '1.50 MB'
    """
    value = max(0, size_bytes or 0)
    for unit, factor in _UNITS:
        if value >= factor:
            return f"{value / factor:.2f} {unit}"
    return f"{value} B"


def truncate_text(text: str, width: int) -> str:
    """Shorten text to ``width`` characters with a trailing ellipsis."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[: width - 3] + "..."


def truncate_path(path: str, width: int) -> str:
    """Shorten a path to ``width`` characters, eliding the middle."""
    if width <= 0:
        return ""
    if len(path) <= width:
        return path
    if width <= 3:
        return path[:width]
    tail_keep = (width - 3) // 2
    head_keep = width - 3 - tail_keep
    return f"{path[:head_keep]}...{path[-tail_keep:]}"


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")


def print_dry_run(message: str) -> None:
    """Print a dry-run notice for an action that was not performed."""
    console.print(f"[dry_run]\\[dry-run][/] {message}")
