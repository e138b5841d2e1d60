"""Disk usage accounting.

Two kinds of numbers are produced here:

- Path sizes: how much data a file, directory or set of matching files
  holds. Measured with du(1) for whole paths and by native traversal
  for predicate-filtered file sets.
- Filesystem snapshots: total used bytes across real mounted
  filesystems, captured before and after a cleanup to report the space
  that was actually freed.
"""

import logging
import math
import os
import subprocess
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from vpsclean.core.context import CleanupContext, WarningKind
from vpsclean.filesystem.predicates import FilePredicate, iter_matching_files
from vpsclean.utils.runner import BoundedProcessRunner
from vpsclean.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)

MOUNTS_FILE = Path("/proc/self/mounts")

# Budget for measuring a single path with du
SIZE_TIMEOUT = 120.0

# Exit status of a shell or timeout(1) that could not find the command
_NOT_FOUND_EXIT_CODE = 127

# Filesystem types that never hold user data on disk.
PSEUDO_FS_TYPES: frozenset[str] = frozenset(
    {
        "autofs",
        "binfmt_misc",
        "bpf",
        "cgroup",
        "cgroup2",
        "configfs",
        "debugfs",
        "devpts",
        "devtmpfs",
        "efivarfs",
        "fusectl",
        "hugetlbfs",
        "mqueue",
        "nsfs",
        "proc",
        "pstore",
        "ramfs",
        "rpc_pipefs",
        "securityfs",
        "selinuxfs",
        "squashfs",
        "sysfs",
        "tmpfs",
        "tracefs",
    }
)

# Mountpoint trees that only hold pseudo or read-only image filesystems.
EXCLUDED_MOUNT_ROOTS: tuple[str, ...] = ("/proc", "/sys", "/dev", "/run", "/snap")

# Container overlay backing stores, counted already via their host filesystem.
OVERLAY_BACKING_PREFIXES: tuple[str, ...] = (
    "/var/lib/docker/overlay2/",
    "/var/lib/docker/rootfs/overlayfs/",
)


class SizeToolMissingError(Exception):
    """Raised when no size measurement tool is available."""


class SizeUnit(str, Enum):
    """Granularity of the size backend.

    Attributes:
        BYTES: Exact byte accounting (GNU ``du -b``).
        KILOBYTES: Kilobyte accounting (``du -k``, e.g. BusyBox).
    """

    BYTES = "bytes"
    KILOBYTES = "kilobytes"


class SizeMeter:
    """Measure sizes of paths and file sets, always in bytes.

    The backend unit is detected once, on first use, by probing whether
    ``du -sb`` works. Kilobyte backends are converted to bytes so both
    report the same unit.
    """

    def __init__(
        self,
        unit: SizeUnit | None = None,
        runner: BoundedProcessRunner | None = None,
        timeout: float = SIZE_TIMEOUT,
    ) -> None:
        """Initialize the meter.

        Args:
            unit: Force a backend unit. None probes du on first use.
            runner: Runner for du. Created on first use when None.
            timeout: Time budget for a single du run.
        """
        self._unit = unit
        self._runner = runner
        self._timeout = timeout

    @property
    def unit(self) -> SizeUnit:
        """Backend unit, detected on first access.

        Raises:
            SizeToolMissingError: If du is not installed.
        """
        if self._unit is None:
            self._unit = detect_size_unit()
        return self._unit

    def path_size_bytes(
        self,
        path: str | os.PathLike[str],
        context: CleanupContext | None = None,
    ) -> int:
        """Disk usage of a file or directory tree in bytes.

        du runs under the meter's time budget. Returns 0 if the path does
        not exist, du cannot read it, or du runs out of time. A timeout is
        recorded as a TIMEOUT warning on ``context`` when one is given.

        Raises:
            SizeToolMissingError: If du is not installed.
        """
        target = os.fspath(path)
        if not target or not os.path.lexists(target):
            return 0

        flag = "-sb" if self.unit == SizeUnit.BYTES else "-sk"
        if self._runner is None:
            self._runner = BoundedProcessRunner()
        try:
            result = self._runner.run(self._timeout, ["du", flag, "--", target])
        except FileNotFoundError as e:
            raise SizeToolMissingError("du is not available") from e
        if result.returncode == _NOT_FOUND_EXIT_CODE and not result.output:
            raise SizeToolMissingError("du is not available")

        if result.timed_out:
            message = f"Size of {target} not measured within {self._timeout:g}s"
            if context is not None:
                context.warn(WarningKind.TIMEOUT, message)
            else:
                logger.warning("%s", message)
            return 0

        # du exits non-zero on unreadable subtrees but still prints a total.
        first = result.output.split(maxsplit=1)
        if not first or not first[0].isdigit():
            logger.debug("du produced no total for %s (exit %d)", target, result.returncode)
            return 0

        value = int(first[0])
        return value if self.unit == SizeUnit.BYTES else value * 1024

    def file_size_bytes(self, st: os.stat_result) -> int:
        """Size of a single file from its stat result, in bytes."""
        if self.unit == SizeUnit.BYTES:
            return st.st_size
        allocated = getattr(st, "st_blocks", 0) * 512
        return math.ceil(max(allocated, st.st_size) / 1024) * 1024

    def matching_files_size_bytes(
        self,
        directory: str | os.PathLike[str],
        predicate: FilePredicate | None = None,
    ) -> int:
        """Sum of sizes of regular files under ``directory`` matching ``predicate``.

        Returns 0 for no matches or a missing directory.
        """
        return sum(self.file_size_bytes(st) for _, st in iter_matching_files(directory, predicate))


def detect_size_unit() -> SizeUnit:
    """Probe du for byte-granularity support.

    Raises:
        SizeToolMissingError: If du is not installed.
    """
    if not command_exists("du"):
        raise SizeToolMissingError("du is not available")
    try:
        result = run_command(["du", "-sb", "/dev/null"], timeout=10.0)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("du -sb probe failed: %s", e)
        return SizeUnit.KILOBYTES
    return SizeUnit.BYTES if result.success else SizeUnit.KILOBYTES


@dataclass(frozen=True, slots=True)
class MountEntry:
    """A line of the kernel mount table.

    Attributes:
        source: Mounted device or source path.
        mountpoint: Where the filesystem is mounted.
        fstype: Filesystem type name.
    """

    source: str
    mountpoint: str
    fstype: str


def _unescape_mount_field(value: str) -> str:
    """Decode octal escapes (``\\040`` for space) used in /proc/mounts."""
    if "\\" not in value:
        return value
    out: list[str] = []
    i = 0
    while i < len(value):
        chunk = value[i : i + 4]
        if len(chunk) == 4 and chunk[0] == "\\" and chunk[1:].isdigit():
            out.append(chr(int(chunk[1:], 8)))
            i += 4
        else:
            out.append(value[i])
            i += 1
    return "".join(out)


def parse_mounts(text: str) -> list[MountEntry]:
    """Parse the contents of /proc/mounts.

    Malformed lines are skipped.
    """
    entries: list[MountEntry] = []
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 3:
            continue
        entries.append(
            MountEntry(
                source=_unescape_mount_field(fields[0]),
                mountpoint=_unescape_mount_field(fields[1]),
                fstype=fields[2],
            )
        )
    return entries


def read_mounts(path: Path = MOUNTS_FILE) -> list[MountEntry]:
    """Read the mount table, returning an empty list if unavailable."""
    try:
        return parse_mounts(path.read_text(encoding="utf-8", errors="replace"))
    except OSError as e:
        logger.warning("Cannot read mount table %s: %s", path, e)
        return []


def is_overlay_backing_path(path: str) -> bool:
    """Check if a path lies inside a container overlay backing store."""
    return any(path.startswith(prefix) for prefix in OVERLAY_BACKING_PREFIXES)


def should_skip_mount(entry: MountEntry) -> bool:
    """Check if a mount must be excluded from usage totals."""
    if entry.fstype in PSEUDO_FS_TYPES:
        return True
    for root in EXCLUDED_MOUNT_ROOTS:
        if entry.mountpoint == root or entry.mountpoint.startswith(root + "/"):
            return True
    return is_overlay_backing_path(entry.mountpoint) or is_overlay_backing_path(entry.source)


@dataclass(frozen=True, slots=True)
class FilesystemUsage:
    """Space and inode usage of one mounted filesystem.

    Attributes:
        mountpoint: Where the filesystem is mounted.
        source: Mounted device or source.
        fstype: Filesystem type.
        total_bytes: Size of the filesystem.
        used_bytes: Bytes in use.
        avail_bytes: Bytes available to unprivileged users.
        inodes_total: Total inodes (0 if the filesystem has no inode limit).
        inodes_used: Inodes in use.
    """

    mountpoint: str
    source: str
    fstype: str
    total_bytes: int
    used_bytes: int
    avail_bytes: int
    inodes_total: int
    inodes_used: int

    @property
    def used_percent(self) -> int:
        """Used space as a percentage of used plus available, rounded up."""
        denominator = self.used_bytes + self.avail_bytes
        if denominator <= 0:
            return 0
        return math.ceil(self.used_bytes * 100 / denominator)


def list_filesystem_usage(
    mounts: Iterable[MountEntry] | None = None,
    statvfs: Callable[[str], os.statvfs_result] = os.statvfs,
    device_of: Callable[[str], int] | None = None,
) -> list[FilesystemUsage]:
    """Collect usage of real mounted filesystems.

    Pseudo filesystems and container overlay backing paths are skipped,
    and a filesystem mounted more than once (bind mounts) is reported
    only at its first mountpoint.

    Args:
        mounts: Mount entries. None reads /proc/self/mounts.
        statvfs: Function returning statvfs results for a mountpoint.
        device_of: Function returning the device id of a mountpoint.
            None uses os.stat().st_dev.
    """
    if mounts is None:
        mounts = read_mounts()
    if device_of is None:
        device_of = _device_of

    seen_devices: set[int] = set()
    usage: list[FilesystemUsage] = []
    for entry in mounts:
        if should_skip_mount(entry):
            continue
        try:
            device = device_of(entry.mountpoint)
            vfs = statvfs(entry.mountpoint)
        except OSError as e:
            logger.debug("Cannot stat mount %s: %s", entry.mountpoint, e)
            continue
        if device in seen_devices:
            continue
        seen_devices.add(device)

        usage.append(
            FilesystemUsage(
                mountpoint=entry.mountpoint,
                source=entry.source,
                fstype=entry.fstype,
                total_bytes=vfs.f_blocks * vfs.f_frsize,
                used_bytes=(vfs.f_blocks - vfs.f_bfree) * vfs.f_frsize,
                avail_bytes=vfs.f_bavail * vfs.f_frsize,
                inodes_total=vfs.f_files,
                inodes_used=vfs.f_files - vfs.f_ffree,
            )
        )
    return usage


def _device_of(path: str) -> int:
    return os.stat(path).st_dev


def capture_filesystem_used_bytes(
    mounts: Iterable[MountEntry] | None = None,
    statvfs: Callable[[str], os.statvfs_result] = os.statvfs,
    device_of: Callable[[str], int] | None = None,
) -> int:
    """Total used bytes across real mounted filesystems."""
    return sum(u.used_bytes for u in list_filesystem_usage(mounts, statvfs, device_of))


@dataclass(frozen=True, slots=True)
class FilesystemSnapshot:
    """Filesystem used bytes at a point in time.

    Attributes:
        used_bytes: Total used bytes across real filesystems.
        captured_at: Monotonic clock reading at capture.
    """

    used_bytes: int
    captured_at: float

    @classmethod
    def capture(cls, measure: Callable[[], int] | None = None) -> "FilesystemSnapshot":
        """Capture the current filesystem usage.

        Args:
            measure: Function returning used bytes. None uses
                capture_filesystem_used_bytes().
        """
        used = measure() if measure is not None else capture_filesystem_used_bytes()
        return cls(used_bytes=used, captured_at=time.monotonic())


def freed_since(start: FilesystemSnapshot, measure: Callable[[], int] | None = None) -> int:
    """Bytes freed since ``start``, floored at zero.

    Usage can grow between the two captures (a log write landing mid
    operation); that is reported as zero freed, never a negative number.
    """
    now = FilesystemSnapshot.capture(measure)
    return max(0, start.used_bytes - now.used_bytes)
