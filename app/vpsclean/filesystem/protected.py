"""Protected filesystem paths that must never be a deletion target.

The guard is an exact-match blocklist on the canonical path: ``/etc``
is protected, ``/etc/foo`` is not. Operations that clear "a directory"
therefore only ever remove entries inside an already-validated
directory, never the directory itself.
"""

import os
from enum import Enum

# Canonical absolute paths that may never be deleted or cleared.
PROTECTED_PATHS: tuple[str, ...] = (
    "/",
    "/bin",
    "/sbin",
    "/usr",
    "/etc",
    "/boot",
    "/root",
    "/home",
    "/lib",
    "/lib64",
    "/var",
    "/usr/bin",
    "/usr/sbin",
    "/usr/lib",
    "/usr/lib64",
    "/usr/local",
    "/usr/local/bin",
    "/usr/local/sbin",
)

_PROTECTED_SET = frozenset(PROTECTED_PATHS)


class PathClassification(str, Enum):
    """Deletion classification of a filesystem path.

    Attributes:
        SAFE: The path may be targeted by a destructive operation.
        PROTECTED: The path must never be targeted.
    """

    SAFE = "safe"
    PROTECTED = "protected"


def canonicalize(path: str | os.PathLike[str]) -> str:
    """Resolve symlinks and ``..`` components without requiring existence.

    Never raises: if resolution fails the literal string is returned.
    """
    literal = os.fspath(path)
    try:
        return os.path.realpath(literal)
    except (OSError, ValueError):
        return literal


def classify_path(path: str | os.PathLike[str]) -> PathClassification:
    """Classify a path as safe to delete or protected.

    An empty path is protected: it would otherwise resolve to the
    current working directory.

    Args:
        path: Path to classify. Relative paths resolve against the cwd.

    Returns:
        PathClassification.PROTECTED if the canonical path is in
        PROTECTED_PATHS or is ``/``, PathClassification.SAFE otherwise.
    """
    if not os.fspath(path):
        return PathClassification.PROTECTED

    target = canonicalize(path)
    if target == "/" or target in _PROTECTED_SET:
        return PathClassification.PROTECTED
    return PathClassification.SAFE


def is_safe_path(path: str | os.PathLike[str]) -> bool:
    """Check if a path may be the target of a destructive operation."""
    return classify_path(path) == PathClassification.SAFE
