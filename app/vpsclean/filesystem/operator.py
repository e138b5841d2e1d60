"""Filesystem deletion and truncation operator.

Every destructive filesystem operation goes through FilesystemOperator.
Targets are checked against the protected path guard first, dry-run
mode is honored, and a missing target is never an error so each
operation can be repeated safely.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from vpsclean.core.context import CleanupContext, WarningKind
from vpsclean.filesystem.predicates import FilePredicate, iter_matching_files
from vpsclean.filesystem.protected import is_safe_path
from vpsclean.filesystem.usage import SizeMeter, SizeUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FilesystemActionResult:
    """Result of a single filesystem operation.

    Attributes:
        path: Path that was operated on.
        success: Whether the operation completed (or would complete).
        bytes_affected: Size of the data that was (or would be) removed.
        error: Error message if the operation failed, None otherwise.
        dry_run: Whether this was a dry-run (no actual change).
        refused: Whether the target was refused as a protected path.
    """

    path: str
    success: bool
    bytes_affected: int = 0
    error: str | None = None
    dry_run: bool = False
    refused: bool = False


class FilesystemOperator:
    """Performs guarded delete, clear and truncate operations.

    Protected targets are refused with a REFUSAL warning on the context
    and a failed result; the caller carries on with its next target.

    Attributes:
        _context: Operation context carrying dry-run mode and warnings.
        _meter: Size meter used for per-file accounting.
    """

    def __init__(self, context: CleanupContext, meter: SizeMeter | None = None) -> None:
        """Initialize the FilesystemOperator.

        Args:
            context: Operation context (dry-run flag, warning collector).
            meter: Size meter for per-file sizes. Defaults to exact bytes.
        """
        self._context = context
        self._meter = meter or SizeMeter(SizeUnit.BYTES)

    @property
    def dry_run(self) -> bool:
        """Check if operator is in dry-run mode."""
        return self._context.dry_run

    @property
    def context(self) -> CleanupContext:
        """Operation context shared with the caller."""
        return self._context

    @property
    def meter(self) -> SizeMeter:
        """Size meter used for accounting."""
        return self._meter

    def delete_file(self, path: str | os.PathLike[str]) -> FilesystemActionResult:
        """Delete a single file or symlink.

        A missing file counts as success with zero bytes affected.

        Args:
            path: File to delete.

        Returns:
            FilesystemActionResult describing the outcome.
        """
        target = os.fspath(path)
        refused = self._refuse_if_protected(target)
        if refused is not None:
            return refused

        try:
            st = os.lstat(target)
        except FileNotFoundError:
            return FilesystemActionResult(path=target, success=True, dry_run=self.dry_run)
        except OSError as e:
            return FilesystemActionResult(path=target, success=False, error=str(e))

        size = self._meter.file_size_bytes(st)
        if self.dry_run:
            logger.info("Dry-run: would delete file %s", target)
            return FilesystemActionResult(
                path=target, success=True, bytes_affected=size, dry_run=True
            )

        try:
            Path(target).unlink(missing_ok=True)
        except OSError as e:
            return FilesystemActionResult(path=target, success=False, error=str(e))

        logger.debug("Deleted file %s (%d bytes)", target, size)
        return FilesystemActionResult(path=target, success=True, bytes_affected=size)

    def clear_directory_contents(self, directory: str | os.PathLike[str]) -> FilesystemActionResult:
        """Remove every entry inside ``directory``, keeping the directory.

        A missing directory counts as success. Entries that cannot be
        removed are logged and make the result a failure, but the
        remaining entries are still processed.

        Args:
            directory: Directory whose contents are removed.

        Returns:
            FilesystemActionResult describing the outcome.
        """
        target = os.fspath(directory)
        refused = self._refuse_if_protected(target)
        if refused is not None:
            return refused

        dir_path = Path(target)
        if not dir_path.is_dir() or dir_path.is_symlink():
            return FilesystemActionResult(path=target, success=True, dry_run=self.dry_run)

        size = self._meter.matching_files_size_bytes(dir_path)
        if self.dry_run:
            logger.info("Dry-run: would clear directory contents %s", target)
            return FilesystemActionResult(
                path=target, success=True, bytes_affected=size, dry_run=True
            )

        errors: list[str] = []
        try:
            children = list(dir_path.iterdir())
        except OSError as e:
            return FilesystemActionResult(path=target, success=False, error=str(e))

        for child in children:
            try:
                _remove_entry(child)
            except OSError as e:
                logger.warning("Could not remove %s: %s", child, e)
                errors.append(f"{child}: {e.strerror or e}")

        if errors:
            return FilesystemActionResult(
                path=target,
                success=False,
                bytes_affected=max(0, size - self._meter.matching_files_size_bytes(dir_path)),
                error="; ".join(errors),
            )
        return FilesystemActionResult(path=target, success=True, bytes_affected=size)

    def remove_directory(self, directory: str | os.PathLike[str]) -> FilesystemActionResult:
        """Remove a directory tree, e.g. a cache directory.

        Args:
            directory: Directory to remove recursively.

        Returns:
            FilesystemActionResult describing the outcome.
        """
        target = os.fspath(directory)
        refused = self._refuse_if_protected(target)
        if refused is not None:
            return refused

        dir_path = Path(target)
        if not dir_path.exists() and not dir_path.is_symlink():
            return FilesystemActionResult(path=target, success=True, dry_run=self.dry_run)

        size = self._meter.matching_files_size_bytes(dir_path)
        if self.dry_run:
            logger.info("Dry-run: would remove directory %s", target)
            return FilesystemActionResult(
                path=target, success=True, bytes_affected=size, dry_run=True
            )

        try:
            _remove_entry(dir_path)
        except OSError as e:
            return FilesystemActionResult(path=target, success=False, error=str(e))
        return FilesystemActionResult(path=target, success=True, bytes_affected=size)

    def delete_matching(
        self,
        directory: str | os.PathLike[str],
        predicate: FilePredicate,
    ) -> FilesystemActionResult:
        """Delete regular files under ``directory`` that match ``predicate``.

        Args:
            directory: Directory to search.
            predicate: Criterion selecting the files to delete.

        Returns:
            FilesystemActionResult with the total size of deleted files.
        """
        target = os.fspath(directory)
        refused = self._refuse_if_protected(target)
        if refused is not None:
            return refused

        removed = 0
        errors: list[str] = []
        for path, st in list(iter_matching_files(target, predicate)):
            size = self._meter.file_size_bytes(st)
            if self.dry_run:
                removed += size
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not delete %s: %s", path, e)
                errors.append(f"{path}: {e.strerror or e}")
                continue
            removed += size

        if self.dry_run:
            logger.info("Dry-run: would delete %d bytes of matching files in %s", removed, target)
        return FilesystemActionResult(
            path=target,
            success=not errors,
            bytes_affected=removed,
            error="; ".join(errors) or None,
            dry_run=self.dry_run,
        )

    def truncate_matching(
        self,
        directory: str | os.PathLike[str],
        predicate: FilePredicate | None = None,
    ) -> int:
        """Truncate matching regular files under ``directory`` to zero length.

        Files are truncated in place rather than deleted so that
        processes holding them open (log writers, the Docker logging
        driver) keep valid handles.

        Args:
            directory: Directory to search.
            predicate: Criterion selecting the files. None matches all files.

        Returns:
            Sum of pre-truncation sizes of the matched files. Under dry-run
            the sizes are summed but nothing is truncated.
            Files that cannot be truncated are left out of the sum and
            recorded as TOOL_FAILURE warnings on the context.
        """
        target = os.fspath(directory)
        if self._refuse_if_protected(target) is not None:
            return 0

        removed = 0
        for path, st in list(iter_matching_files(target, predicate)):
            if self.dry_run:
                removed += st.st_size
                continue
            try:
                os.truncate(path, 0)
            except OSError as e:
                self._context.warn(
                    WarningKind.TOOL_FAILURE, f"Could not truncate {path}: {e.strerror or e}"
                )
                continue
            removed += st.st_size

        if self.dry_run:
            logger.info("Dry-run: would truncate %d bytes under %s", removed, target)
        return removed

    def _refuse_if_protected(self, target: str) -> FilesystemActionResult | None:
        """Return a refusal result if ``target`` is protected."""
        if is_safe_path(target):
            return None
        message = f"Refusing to delete protected path: {target}"
        self._context.warn(WarningKind.REFUSAL, message)
        return FilesystemActionResult(path=target, success=False, error=message, refused=True)


def _remove_entry(path: Path) -> None:
    """Remove a file, symlink or directory tree; missing is not an error."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)
