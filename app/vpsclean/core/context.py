"""Cleanup context, warnings and operation results.

A CleanupContext is created per user-triggered operation and passed to
every component explicitly. It carries the dry-run flag and collects
recoverable warnings (refusals, tool failures, timeouts) so that the
caller can show them in the final summary.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class WarningKind(str, Enum):
    """Category of a recoverable problem.

    Attributes:
        REFUSAL: A protected path was targeted and skipped.
        TOOL_FAILURE: An external tool exited non-zero or was missing.
        TIMEOUT: A bounded scan ran out of time.
        DELAYED_RECLAIM: Data was removed but free space has not grown yet.
        INVALID_UPDATE: A downloaded update failed validation.
    """

    REFUSAL = "refusal"
    TOOL_FAILURE = "tool_failure"
    TIMEOUT = "timeout"
    DELAYED_RECLAIM = "delayed_reclaim"
    INVALID_UPDATE = "invalid_update"


@dataclass(frozen=True, slots=True)
class OperationWarning:
    """A single recoverable problem raised during an operation."""

    kind: WarningKind
    message: str


@dataclass(slots=True)
class CleanupContext:
    """Per-operation settings and warning collector.

    Attributes:
        dry_run: If True, mutating operations only report their effect.
        warnings: Warnings collected so far, in order.
    """

    dry_run: bool = False
    warnings: list[OperationWarning] = field(default_factory=list)

    def warn(self, kind: WarningKind, message: str) -> None:
        """Record a recoverable warning and log it."""
        self.warnings.append(OperationWarning(kind=kind, message=message))
        logger.warning("[%s] %s", kind.value, message)

    def drain_warnings(self) -> tuple[OperationWarning, ...]:
        """Return collected warnings and reset the collector."""
        drained = tuple(self.warnings)
        self.warnings.clear()
        return drained

    def has_warnings(self, kind: WarningKind | None = None) -> bool:
        """Check if any (or any of a given kind) warnings were collected."""
        if kind is None:
            return bool(self.warnings)
        return any(w.kind == kind for w in self.warnings)


@dataclass(frozen=True, slots=True)
class OperationResult:
    """Summary of a destructive operation.

    bytes_removed and bytes_freed are reported separately: open file
    handles and deferred block release can make the filesystem delta
    smaller than the data that was removed.

    Attributes:
        label: Short name of the operation.
        bytes_removed: Pre-operation size of removed or truncated data,
            None when the operation cannot estimate it.
        bytes_freed: Observed drop in filesystem used bytes, never negative.
        warnings: Warnings raised during the operation.
        dry_run: Whether the operation only reported its effect.
    """

    label: str
    bytes_removed: int | None
    bytes_freed: int
    warnings: tuple[OperationWarning, ...] = ()
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Validate byte counts after initialization."""
        if self.bytes_freed < 0:
            msg = f"bytes_freed cannot be negative, got {self.bytes_freed}"
            raise ValueError(msg)
        if self.bytes_removed is not None and self.bytes_removed < 0:
            msg = f"bytes_removed cannot be negative, got {self.bytes_removed}"
            raise ValueError(msg)

    @property
    def reclaim_delayed(self) -> bool:
        """Check if data was removed but no free space showed up yet."""
        return any(w.kind == WarningKind.DELAYED_RECLAIM for w in self.warnings)
