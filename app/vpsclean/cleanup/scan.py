"""Disk usage scans for the overview.

Both scans walk whole filesystems and can take minutes on large hosts,
so they run through the BoundedProcessRunner. Output is parsed line by
line: when the budget runs out the lines captured so far still form a
usable, clearly marked partial report.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from vpsclean.core.context import CleanupContext, WarningKind
from vpsclean.filesystem.usage import SizeMeter, SizeUnit
from vpsclean.utils.runner import BoundedProcessRunner, BoundedRunResult

logger = logging.getLogger(__name__)

# Exit status of a shell or timeout(1) that could not find the command
COMMAND_NOT_FOUND_EXIT_CODE = 127

DEFAULT_LIMIT = 15


@dataclass(frozen=True, slots=True)
class ScanEntry:
    """A path and its size in bytes."""

    path: str
    size_bytes: int


@dataclass(frozen=True, slots=True)
class ScanReport:
    """Sorted scan results.

    Attributes:
        entries: Largest entries first.
        timed_out: True if the scan was cut short and entries are partial.
    """

    entries: tuple[ScanEntry, ...]
    timed_out: bool = False


def parse_size_lines(output: str, multiplier: int = 1) -> list[ScanEntry]:
    """Parse ``<size> <path>`` lines, skipping malformed ones.

    The last line of a killed scan may be cut off; it fails to parse and
    is dropped like any other malformed line.
    """
    entries: list[ScanEntry] = []
    for line in output.splitlines():
        # du separates with a tab, stat with a space
        size, _, path = line.lstrip().replace("\t", " ", 1).partition(" ")
        if not size.isdigit() or not path:
            continue
        entries.append(ScanEntry(path=path, size_bytes=int(size) * multiplier))
    return entries


def _build_report(
    context: CleanupContext,
    label: str,
    result: BoundedRunResult,
    timeout_seconds: float,
    entries: list[ScanEntry],
    limit: int,
) -> ScanReport:
    if result.timed_out:
        context.warn(
            WarningKind.TIMEOUT,
            f"{label} timed out after {timeout_seconds:g}s, results are partial",
        )
    elif result.returncode == COMMAND_NOT_FOUND_EXIT_CODE and not entries:
        context.warn(WarningKind.TOOL_FAILURE, f"{label}: scan command not found")

    entries.sort(key=lambda e: e.size_bytes, reverse=True)
    return ScanReport(entries=tuple(entries[:limit]), timed_out=result.timed_out)


def top_directories(
    context: CleanupContext,
    runner: BoundedProcessRunner,
    timeout_seconds: float,
    root: str = "/",
    depth: int = 2,
    limit: int = DEFAULT_LIMIT,
    meter: SizeMeter | None = None,
) -> ScanReport:
    """Largest directories up to ``depth`` levels below ``root``.

    Stays on the filesystem of ``root``.

    Args:
        context: Operation context receiving timeout warnings.
        runner: Bounded runner executing du.
        timeout_seconds: Wall-clock budget for the scan.
        root: Directory to scan.
        depth: Maximum directory depth to report.
        limit: Number of entries to keep.
        meter: Size meter deciding between byte and kilobyte du output.
    """
    meter = meter or SizeMeter()
    if meter.unit == SizeUnit.BYTES:
        args, multiplier = ["du", "-x", "-b", "-d", str(depth), root], 1
    else:
        args, multiplier = ["du", "-x", "-k", "-d", str(depth), root], 1024

    try:
        result = runner.run(timeout_seconds, args)
    except FileNotFoundError:
        context.warn(WarningKind.TOOL_FAILURE, "Directory scan: du is not installed")
        return ScanReport(entries=())

    entries = parse_size_lines(result.output, multiplier)
    return _build_report(context, "Directory scan", result, timeout_seconds, entries, limit)


def largest_files(
    context: CleanupContext,
    runner: BoundedProcessRunner,
    timeout_seconds: float,
    min_size_mb: int,
    roots: Sequence[str] = ("/",),
    limit: int = DEFAULT_LIMIT,
) -> ScanReport:
    """Largest regular files above ``min_size_mb`` under ``roots``.

    Stays on the filesystem of each root.

    Args:
        context: Operation context receiving timeout warnings.
        runner: Bounded runner executing find.
        timeout_seconds: Wall-clock budget for the scan.
        min_size_mb: Only files larger than this many MiB are listed.
        roots: Directories to search.
        limit: Number of entries to keep.
    """
    args = [
        "find",
        *roots,
        "-xdev",
        "-type",
        "f",
        "-size",
        f"+{min_size_mb}M",
        "-exec",
        "stat",
        "-c",
        "%s %n",
        "{}",
        "+",
    ]
    try:
        result = runner.run(timeout_seconds, args)
    except FileNotFoundError:
        context.warn(WarningKind.TOOL_FAILURE, "Large file scan: find is not installed")
        return ScanReport(entries=())

    entries = parse_size_lines(result.output)
    return _build_report(context, "Large file scan", result, timeout_seconds, entries, limit)
