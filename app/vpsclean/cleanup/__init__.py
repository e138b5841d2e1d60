"""Cleanup routines, measured sessions and disk usage scans."""

from vpsclean.cleanup.packages import PACKAGE_MANAGERS, PackageManagerAdapter, find_package_manager
from vpsclean.cleanup.scan import ScanEntry, ScanReport, largest_files, top_directories
from vpsclean.cleanup.session import run_measured
from vpsclean.cleanup.tasks import (
    DEFAULT_TARGETS,
    CleanupTargets,
    clean_crash_dumps,
    clean_old_temp_files,
    clean_package_cache,
    clean_rotated_logs,
    deep_clean,
    quick_clean,
    remove_orphan_packages,
    run_tool_step,
    truncate_docker_logs,
    truncate_large_logs,
    vacuum_journal,
)

__all__ = [
    "DEFAULT_TARGETS",
    "PACKAGE_MANAGERS",
    "CleanupTargets",
    "PackageManagerAdapter",
    "ScanEntry",
    "ScanReport",
    "clean_crash_dumps",
    "clean_old_temp_files",
    "clean_package_cache",
    "clean_rotated_logs",
    "deep_clean",
    "find_package_manager",
    "largest_files",
    "quick_clean",
    "remove_orphan_packages",
    "run_measured",
    "run_tool_step",
    "top_directories",
    "truncate_docker_logs",
    "truncate_large_logs",
    "vacuum_journal",
]
