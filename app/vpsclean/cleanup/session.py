"""Measured cleanup sessions.

A session wraps one destructive action between two filesystem
snapshots so the caller gets both numbers: the data the action removed
and the space the filesystem actually gave back.
"""

import logging
from collections.abc import Callable

from vpsclean.core.context import CleanupContext, OperationResult, WarningKind
from vpsclean.core.logs import log_action
from vpsclean.filesystem.usage import FilesystemSnapshot, freed_since

logger = logging.getLogger(__name__)

DELAYED_RECLAIM_MESSAGE = (
    "Filesystem free space may update later (open files, reserved blocks, or delayed reclaim)."
)


def run_measured(
    context: CleanupContext,
    category: str,
    label: str,
    action: Callable[[], int | None],
    measure: Callable[[], int] | None = None,
) -> OperationResult:
    """Run a destructive action and report removed and freed bytes.

    Under dry-run no snapshot is taken, freed is reported as zero and
    nothing is written to the action log.

    Args:
        context: Operation context. Warnings collected so far are drained
            into the result.
        category: Action log category (e.g. "logs").
        label: Action name used in the result and the action log.
        action: Callable performing the work. Returns the bytes removed,
            or None when the amount cannot be estimated.
        measure: Function returning filesystem used bytes, for tests.

    Returns:
        OperationResult for the action.
    """
    if context.dry_run:
        removed = action()
        return OperationResult(
            label=label,
            bytes_removed=removed,
            bytes_freed=0,
            warnings=context.drain_warnings(),
            dry_run=True,
        )

    start = FilesystemSnapshot.capture(measure)
    removed = action()
    freed = freed_since(start, measure)
    logger.debug("%s: removed=%s freed=%d", label, removed, freed)

    if removed and freed == 0:
        context.warn(WarningKind.DELAYED_RECLAIM, DELAYED_RECLAIM_MESSAGE)

    log_action(category, label, freed)
    return OperationResult(
        label=label,
        bytes_removed=removed,
        bytes_freed=freed,
        warnings=context.drain_warnings(),
    )
