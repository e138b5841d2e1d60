"""Typed file match criteria and native directory traversal.

Predicates decide whether a regular file found under a directory is a
cleanup target. They are plain value objects evaluated in-process, so
no file name ever reaches a shell.

Example:
    >>> large_logs = AllOf((SizeAbove(50 * 1024 * 1024), NameExcludes(("wtmp",))))
    >>> for path, st in iter_matching_files("/var/log", large_logs):
    ...     print(path, st.st_size)
"""

import fnmatch
import logging
import os
import stat
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class FilePredicate(ABC):
    """Match criterion for a regular file."""

    @abstractmethod
    def matches(self, path: Path, st: os.stat_result) -> bool:
        """Check whether the file at ``path`` with stat ``st`` matches."""


@dataclass(frozen=True, slots=True)
class NameGlob(FilePredicate):
    """Match files whose name matches any of the glob patterns."""

    patterns: tuple[str, ...]

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return any(fnmatch.fnmatchcase(path.name, p) for p in self.patterns)


@dataclass(frozen=True, slots=True)
class NameExcludes(FilePredicate):
    """Match files whose name matches none of the glob patterns."""

    patterns: tuple[str, ...]

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return not any(fnmatch.fnmatchcase(path.name, p) for p in self.patterns)


@dataclass(frozen=True, slots=True)
class SizeAbove(FilePredicate):
    """Match files strictly larger than ``min_bytes``."""

    min_bytes: int

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return st.st_size > self.min_bytes


@dataclass(frozen=True, slots=True)
class OlderThan(FilePredicate):
    """Match files last modified more than ``days`` days ago.

    Attributes:
        days: Age threshold in days.
        now: Reference time (Unix seconds). None uses the current time.
    """

    days: float
    now: float | None = None

    def matches(self, path: Path, st: os.stat_result) -> bool:
        reference = self.now if self.now is not None else time.time()
        return reference - st.st_mtime > self.days * SECONDS_PER_DAY


@dataclass(frozen=True, slots=True)
class AllOf(FilePredicate):
    """Match files satisfying every predicate."""

    predicates: tuple[FilePredicate, ...]

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return all(p.matches(path, st) for p in self.predicates)


@dataclass(frozen=True, slots=True)
class AnyOf(FilePredicate):
    """Match files satisfying at least one predicate."""

    predicates: tuple[FilePredicate, ...]

    def matches(self, path: Path, st: os.stat_result) -> bool:
        return any(p.matches(path, st) for p in self.predicates)


# Rotated or compressed log archives (syslog.1, auth.log.2.gz, dmesg.old, ...)
ROTATED_LOG_PREDICATE = NameGlob(("*.gz", "*.old", "*.[0-9]", "*.[0-9][0-9]*", "*.xz", "*.zst"))

# Docker json-file logging driver output
DOCKER_LOG_PREDICATE = NameGlob(("*-json.log",))

# Binary login accounting files that must keep their structure
LOGIN_ACCOUNTING_FILES = NameExcludes(("wtmp", "btmp", "lastlog"))


def iter_matching_files(
    root: str | os.PathLike[str],
    predicate: FilePredicate | None = None,
) -> Iterator[tuple[Path, os.stat_result]]:
    """Yield regular files under ``root`` that match ``predicate``.

    Symlinks are neither followed nor yielded. Unreadable directories
    are skipped. A missing ``root`` yields nothing.

    Args:
        root: Directory to traverse.
        predicate: Criterion to apply. None matches every regular file.

    Yields:
        Tuples of (path, lstat result).
    """
    root_path = Path(root)
    if not root_path.is_dir():
        return

    def _on_error(error: OSError) -> None:
        logger.debug("Skipping unreadable path %s: %s", error.filename, error.strerror)

    for dirpath, _dirnames, filenames in os.walk(root_path, onerror=_on_error):
        for name in filenames:
            path = Path(dirpath) / name
            try:
                st = os.lstat(path)
            except OSError:
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            if predicate is None or predicate.matches(path, st):
                yield path, st
