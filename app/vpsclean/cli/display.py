"""Shared Rich display functions for results, usage and scans.

Every destructive command ends with print_operation_result(): the
bytes removed, the bytes the filesystem actually freed, and the
warnings raised on the way.
"""

from collections.abc import Sequence

from rich.markup import escape
from rich.table import Table

from vpsclean.cleanup.scan import ScanReport
from vpsclean.core.context import OperationResult, OperationWarning, WarningKind
from vpsclean.filesystem.usage import FilesystemUsage
from vpsclean.utils.formatting import (
    console,
    format_size,
    print_dry_run,
    print_success,
    print_warning,
    truncate_path,
)

_WARNING_LABELS: dict[WarningKind, str] = {
    WarningKind.REFUSAL: "refused",
    WarningKind.TOOL_FAILURE: "tool failure",
    WarningKind.TIMEOUT: "timeout",
    WarningKind.DELAYED_RECLAIM: "delayed reclaim",
    WarningKind.INVALID_UPDATE: "invalid update",
}

# Column width for paths in scan tables
_PATH_WIDTH = 70


def print_warnings(warnings: Sequence[OperationWarning]) -> None:
    """Print collected warnings, one per line."""
    for warning in warnings:
        print_warning(escape(f"[{_WARNING_LABELS[warning.kind]}] {warning.message}"))


def print_operation_result(result: OperationResult) -> None:
    """Print the removed-vs-freed summary of an operation."""
    removed = "unknown" if result.bytes_removed is None else format_size(result.bytes_removed)

    if result.dry_run:
        print_dry_run(f"{result.label}: would remove [size]{removed}[/]")
    else:
        console.print(f"{result.label}: removed [size]{removed}[/]")
        print_success(f"Freed on filesystem: {format_size(result.bytes_freed)}")

    print_warnings(result.warnings)
    if result.warnings and not result.dry_run and not result.reclaim_delayed:
        print_warning("Finished with warnings. Some steps may need a retry.")


def create_usage_table(usage: Sequence[FilesystemUsage]) -> Table:
    """Create a table of per-filesystem space and inode usage."""
    table = Table(
        title="Filesystems",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Mountpoint", no_wrap=True)
    table.add_column("Type", style="muted")
    table.add_column("Size", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Avail", justify="right")
    table.add_column("Use%", justify="right")
    table.add_column("Inodes", justify="right", style="muted")

    for fs in usage:
        percent = fs.used_percent
        style = "error" if percent >= 90 else "warning" if percent >= 75 else "success"
        inodes = f"{fs.inodes_used}/{fs.inodes_total}" if fs.inodes_total else "-"
        table.add_row(
            escape(fs.mountpoint),
            escape(fs.fstype),
            format_size(fs.total_bytes),
            format_size(fs.used_bytes),
            format_size(fs.avail_bytes),
            f"[{style}]{percent}%[/{style}]",
            inodes,
        )

    return table


def create_scan_table(title: str, report: ScanReport) -> Table:
    """Create a size-sorted table from a scan report.

    A timed-out scan is marked as partial in the title.
    """
    if report.timed_out:
        title = f"{title} (partial, timed out)"

    table = Table(
        title=escape(title),
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Size", justify="right", style="size")
    table.add_column("Path")

    for entry in report.entries:
        table.add_row(
            format_size(entry.size_bytes), escape(truncate_path(entry.path, _PATH_WIDTH))
        )

    return table
