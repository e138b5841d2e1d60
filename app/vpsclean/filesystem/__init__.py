"""Filesystem safety and accounting module.

This module provides the protected path guard, typed file predicates,
size and usage accounting, and the guarded destructive operator.
"""

from vpsclean.filesystem.operator import FilesystemActionResult, FilesystemOperator
from vpsclean.filesystem.predicates import (
    DOCKER_LOG_PREDICATE,
    ROTATED_LOG_PREDICATE,
    AllOf,
    AnyOf,
    FilePredicate,
    NameExcludes,
    NameGlob,
    OlderThan,
    SizeAbove,
    iter_matching_files,
)
from vpsclean.filesystem.protected import (
    PROTECTED_PATHS,
    PathClassification,
    classify_path,
    is_safe_path,
)
from vpsclean.filesystem.usage import (
    FilesystemSnapshot,
    SizeMeter,
    SizeToolMissingError,
    SizeUnit,
    capture_filesystem_used_bytes,
    freed_since,
)

__all__ = [
    "DOCKER_LOG_PREDICATE",
    "PROTECTED_PATHS",
    "ROTATED_LOG_PREDICATE",
    "AllOf",
    "AnyOf",
    "FilePredicate",
    "FilesystemActionResult",
    "FilesystemOperator",
    "FilesystemSnapshot",
    "NameExcludes",
    "NameGlob",
    "OlderThan",
    "PathClassification",
    "SizeAbove",
    "SizeMeter",
    "SizeToolMissingError",
    "SizeUnit",
    "capture_filesystem_used_bytes",
    "classify_path",
    "freed_since",
    "is_safe_path",
    "iter_matching_files",
]
