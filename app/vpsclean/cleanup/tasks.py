"""Cleanup routines.

Each public routine runs one cleanup area inside a measured session and
returns an OperationResult. Routines never abort on a failing step: a
refused path, an unreadable file or a package manager that exits
non-zero is recorded as a warning and the routine carries on.
"""

import logging
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from vpsclean.cleanup.packages import PackageManagerAdapter, find_package_manager
from vpsclean.cleanup.session import run_measured
from vpsclean.core.config import CleanerConfig
from vpsclean.core.context import CleanupContext, OperationResult, WarningKind
from vpsclean.core.logs import log_action
from vpsclean.filesystem.operator import FilesystemActionResult, FilesystemOperator
from vpsclean.filesystem.predicates import (
    DOCKER_LOG_PREDICATE,
    LOGIN_ACCOUNTING_FILES,
    ROTATED_LOG_PREDICATE,
    AllOf,
    OlderThan,
    SizeAbove,
)
from vpsclean.utils.shell import run_command, shell_argv

logger = logging.getLogger(__name__)

# Upper bound for a single package manager or journalctl invocation
TOOL_TIMEOUT = 300.0

THUMBNAIL_CACHE = ".cache/thumbnails"
TRASH_DIR = ".local/share/Trash"

MEGABYTE = 1024 * 1024


@dataclass(frozen=True, slots=True)
class CleanupTargets:
    """Directories the cleanup routines work on.

    Attributes:
        log_dir: System log directory.
        temp_dirs: Directories holding temporary files.
        crash_dir: Crash dump directory.
        docker_containers_dir: Docker per-container state directory.
        root_home: Home directory of root.
        home_root: Parent of regular users' home directories.
    """

    log_dir: Path = Path("/var/log")
    temp_dirs: tuple[Path, ...] = (Path("/tmp"), Path("/var/tmp"))
    crash_dir: Path = Path("/var/crash")
    docker_containers_dir: Path = Path("/var/lib/docker/containers")
    root_home: Path = Path("/root")
    home_root: Path = Path("/home")

    def user_dirs(self, relative: str) -> list[Path]:
        """Existing ``relative`` directories under root's and users' homes."""
        candidates = [self.root_home / relative]
        if self.home_root.is_dir():
            candidates.extend(sorted(self.home_root.glob(f"*/{relative}")))
        return [p for p in candidates if p.is_dir() and not p.is_symlink()]


DEFAULT_TARGETS = CleanupTargets()


def run_tool_step(
    context: CleanupContext,
    label: str,
    command: Sequence[str] | str,
    timeout: float = TOOL_TIMEOUT,
) -> bool:
    """Run an external cleanup tool, turning failures into warnings.

    Under dry-run the command is only logged.

    Args:
        context: Operation context.
        label: Human readable step name used in warnings.
        command: Argument list, or a shell pipeline string.
        timeout: Maximum seconds the tool may run.

    Returns:
        True if the tool succeeded (or would run under dry-run).
    """
    args = shell_argv(command) if isinstance(command, str) else list(command)
    if context.dry_run:
        logger.info("Dry-run: would run %s", " ".join(args))
        return True

    try:
        result = run_command(args, timeout=timeout)
    except FileNotFoundError:
        context.warn(WarningKind.TOOL_FAILURE, f"{label}: {args[0]} is not installed")
        return False
    except subprocess.TimeoutExpired:
        context.warn(WarningKind.TOOL_FAILURE, f"{label}: {args[0]} did not finish in {timeout:g}s")
        return False

    if not result.success:
        detail = result.stderr.strip().splitlines()
        reason = detail[-1] if detail else f"exit code {result.returncode}"
        context.warn(WarningKind.TOOL_FAILURE, f"{label}: {reason}")
        return False
    return True


def _collect(context: CleanupContext, label: str, result: FilesystemActionResult) -> int:
    """Turn a failed filesystem result into a warning and return its bytes."""
    if not result.success and not result.refused:
        context.warn(WarningKind.TOOL_FAILURE, f"{label}: {result.error}")
    return result.bytes_affected


def _remove_rotated_logs(operator: FilesystemOperator, targets: CleanupTargets) -> int:
    result = operator.delete_matching(targets.log_dir, ROTATED_LOG_PREDICATE)
    return _collect(operator.context, "rotated logs", result)


def _truncate_large_logs(
    operator: FilesystemOperator, targets: CleanupTargets, threshold_mb: int
) -> int:
    predicate = AllOf((SizeAbove(threshold_mb * MEGABYTE), LOGIN_ACCOUNTING_FILES))
    return operator.truncate_matching(targets.log_dir, predicate)


def _remove_old_temp_files(
    operator: FilesystemOperator, targets: CleanupTargets, age_days: int
) -> int:
    predicate = OlderThan(age_days)
    return sum(
        _collect(operator.context, "temp files", operator.delete_matching(d, predicate))
        for d in targets.temp_dirs
    )


def _clear_user_dirs(
    operator: FilesystemOperator, targets: CleanupTargets, relative: str, label: str
) -> int:
    return sum(
        _collect(operator.context, label, operator.clear_directory_contents(d))
        for d in targets.user_dirs(relative)
    )


def _clear_crash_dumps(operator: FilesystemOperator, targets: CleanupTargets) -> int:
    result = operator.clear_directory_contents(targets.crash_dir)
    return _collect(operator.context, "crash dumps", result)


def _clean_package_cache(
    operator: FilesystemOperator, adapter: PackageManagerAdapter | None
) -> int:
    context = operator.context
    if adapter is None:
        adapter = find_package_manager()
    if adapter is None:
        context.warn(WarningKind.TOOL_FAILURE, "package cache: no supported package manager found")
        return 0

    size = sum(operator.meter.path_size_bytes(d, context) for d in adapter.cache_dirs)
    if not run_tool_step(context, f"{adapter.name} cache", adapter.clean_cache):
        return 0
    return size


def _remove_orphans(context: CleanupContext, adapter: PackageManagerAdapter | None) -> None:
    manager = adapter or find_package_manager()
    if manager is None:
        context.warn(WarningKind.TOOL_FAILURE, "orphans: no supported package manager found")
    elif manager.autoremove is None:
        context.warn(
            WarningKind.TOOL_FAILURE, f"orphans: {manager.name} has no orphan removal command"
        )
    else:
        run_tool_step(context, f"{manager.name} autoremove", manager.autoremove)


def _vacuum_journal(context: CleanupContext, retention_days: int) -> None:
    run_tool_step(context, "journal", ["journalctl", f"--vacuum-time={retention_days}d"])


def _run_sequence(
    context: CleanupContext,
    category: str,
    steps: Sequence[tuple[str, Callable[[], int | None]]],
    measure: Callable[[], int] | None,
) -> OperationResult:
    """Run named steps in order as one measured operation.

    A step returning None removed an unknown amount; it adds nothing to
    the removed total and only shows up in the freed bytes.
    """

    def _run_all() -> int:
        total = 0
        for name, step in steps:
            removed = step()
            logger.debug("%s step %s removed %s bytes", category, name, removed)
            if not context.dry_run:
                log_action(category, name, removed or 0)
            total += removed or 0
        return total

    return run_measured(context, category, "total", _run_all, measure)


def clean_rotated_logs(
    operator: FilesystemOperator,
    targets: CleanupTargets = DEFAULT_TARGETS,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Delete rotated and compressed log archives under the log directory."""
    return run_measured(
        operator.context,
        "logs",
        "rotated-clean",
        lambda: _remove_rotated_logs(operator, targets),
        measure,
    )


def truncate_large_logs(
    operator: FilesystemOperator,
    threshold_mb: int,
    targets: CleanupTargets = DEFAULT_TARGETS,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Truncate log files larger than ``threshold_mb`` to zero length.

    wtmp, btmp and lastlog are binary accounting files and are skipped.
    """
    return run_measured(
        operator.context,
        "logs",
        "truncate-large",
        lambda: _truncate_large_logs(operator, targets, threshold_mb),
        measure,
    )


def truncate_docker_logs(
    operator: FilesystemOperator,
    targets: CleanupTargets = DEFAULT_TARGETS,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Truncate Docker json-file container logs in place.

    The Docker daemon keeps these files open, so they are emptied rather
    than deleted.
    """
    return run_measured(
        operator.context,
        "docker",
        "container-logs",
        lambda: operator.truncate_matching(targets.docker_containers_dir, DOCKER_LOG_PREDICATE),
        measure,
    )


def clean_old_temp_files(
    operator: FilesystemOperator,
    age_days: int,
    targets: CleanupTargets = DEFAULT_TARGETS,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Delete files in the temp directories not modified for ``age_days`` days."""
    return run_measured(
        operator.context,
        "temp",
        "old-files",
        lambda: _remove_old_temp_files(operator, targets, age_days),
        measure,
    )


def clean_crash_dumps(
    operator: FilesystemOperator,
    targets: CleanupTargets = DEFAULT_TARGETS,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Remove everything inside the crash dump directory."""
    return run_measured(
        operator.context,
        "crash",
        "crash-dumps",
        lambda: _clear_crash_dumps(operator, targets),
        measure,
    )


def clean_package_cache(
    operator: FilesystemOperator,
    adapter: PackageManagerAdapter | None = None,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Empty the package manager download cache.

    Args:
        operator: Filesystem operator (used for its context and size meter).
        adapter: Package manager to use. None picks the first one installed.
        measure: Function returning filesystem used bytes, for tests.
    """
    return run_measured(
        operator.context,
        "packages",
        "cache-clean",
        lambda: _clean_package_cache(operator, adapter),
        measure,
    )


def remove_orphan_packages(
    context: CleanupContext,
    adapter: PackageManagerAdapter | None = None,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Remove packages that were installed as dependencies and are no longer needed.

    The removed size is not known in advance and is reported as None.
    """
    return run_measured(
        context, "packages", "autoremove", lambda: _remove_orphans(context, adapter), measure
    )


def vacuum_journal(
    context: CleanupContext,
    retention_days: int,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Drop systemd journal entries older than ``retention_days`` days.

    journalctl does not report what it removed, so only the freed
    filesystem space is known.
    """
    return run_measured(
        context,
        "logs",
        "journal-vacuum",
        lambda: _vacuum_journal(context, retention_days),
        measure,
    )


def _everyday_steps(
    operator: FilesystemOperator,
    config: CleanerConfig,
    adapter: PackageManagerAdapter | None,
    targets: CleanupTargets,
) -> list[tuple[str, Callable[[], int | None]]]:
    return [
        ("rotated-logs", lambda: _remove_rotated_logs(operator, targets)),
        ("pkg-cache", lambda: _clean_package_cache(operator, adapter)),
        (
            "temp-files",
            lambda: _remove_old_temp_files(operator, targets, config.temp_file_age_days),
        ),
        (
            "thumbnails",
            lambda: _clear_user_dirs(operator, targets, THUMBNAIL_CACHE, "thumbnails"),
        ),
        ("trash", lambda: _clear_user_dirs(operator, targets, TRASH_DIR, "trash")),
        ("crash-dumps", lambda: _clear_crash_dumps(operator, targets)),
    ]


def quick_clean(
    operator: FilesystemOperator,
    config: CleanerConfig,
    adapter: PackageManagerAdapter | None = None,
    targets: CleanupTargets = DEFAULT_TARGETS,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Run the safe everyday cleanup sequence as one measured operation.

    Steps, in order: rotated logs, package cache, old temp files,
    thumbnail caches, trash directories, crash dumps. A failing step
    leaves a warning and the sequence continues. Each step's estimate is
    written to the action log, followed by the measured total.
    """
    steps = _everyday_steps(operator, config, adapter, targets)
    return _run_sequence(operator.context, "quick-clean", steps, measure)


def deep_clean(
    operator: FilesystemOperator,
    config: CleanerConfig,
    adapter: PackageManagerAdapter | None = None,
    targets: CleanupTargets = DEFAULT_TARGETS,
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Run every cleanup area as one measured operation.

    Steps, in order: rotated logs, package cache, orphaned packages, old
    temp files, thumbnail caches, trash directories, crash dumps, journal
    vacuum. A failing package manager or journalctl step leaves a
    TOOL_FAILURE warning and the next step still runs.
    """
    context = operator.context
    steps = _everyday_steps(operator, config, adapter, targets)
    steps.insert(2, ("orphans", lambda: _remove_orphans(context, adapter)))
    steps.append(("journal", lambda: _vacuum_journal(context, config.journal_retention_days)))
    return _run_sequence(context, "deep-clean", steps, measure)
