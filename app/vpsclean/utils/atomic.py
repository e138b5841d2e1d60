"""Atomic file replacement primitives.

Both helpers stage content in a uniquely named temporary file in the
destination directory and then rename it over the destination with
os.replace(). The rename is the only operation that touches the final
path, so readers observe either the old or the new complete file.
"""

import logging
import os
import shutil
import stat
from pathlib import Path
from tempfile import NamedTemporaryFile

from vpsclean.core.interrupt import discard_temp_file, register_temp_file

logger = logging.getLogger(__name__)

# Permissions given to an installed executable.
INSTALL_MODE = 0o755

STAGE_PREFIX = ".vps-cleaner-stage."


class InstallError(Exception):
    """Raised when an executable cannot be installed atomically."""


def atomic_write(path: Path, data: bytes) -> Path:
    """Write bytes to a file atomically.

    Args:
        path: Destination file. Parent directories are created.
        data: Content to write.

    Returns:
        The destination path.

    Raises:
        OSError: If the file cannot be written. The staged temporary
            file is removed before any error or interrupt propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=STAGE_PREFIX,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            register_temp_file(tmp_path)
            f.write(data)
        os.replace(tmp_path, path)
    finally:
        # After a successful rename the staged name no longer exists.
        if tmp_path is not None:
            discard_temp_file(tmp_path)

    return path


def _ensure_executable(path: Path) -> None:
    mode = path.stat().st_mode
    os.chmod(path, stat.S_IMODE(mode) | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def atomic_install(source: Path | str, target: Path | str) -> Path:
    """Install an executable over ``target`` without a half-written window.

    If source and target resolve to the same file, only the executable
    bits are ensured. Otherwise the source is copied into a staged file
    next to the target (same filesystem, so the rename is atomic), made
    executable, and renamed onto the target.

    Args:
        source: File to install.
        target: Destination path of the executable.

    Returns:
        The target path.

    Raises:
        InstallError: If the source is missing or any of copy, chmod or
            rename fails. The target is left untouched in that case.
    """
    source_path = Path(source)
    target_path = Path(target)

    if not source_path.is_file():
        raise InstallError(f"Install source is not a file: {source_path}")

    if os.path.realpath(source_path) == os.path.realpath(target_path):
        try:
            _ensure_executable(target_path)
        except OSError as e:
            raise InstallError(f"Cannot mark {target_path} executable: {e}") from e
        logger.debug("Install source is the target itself: %s", target_path)
        return target_path

    staged: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=target_path.parent,
            prefix=STAGE_PREFIX,
            delete=False,
        ) as f:
            staged = Path(f.name)
            register_temp_file(staged)
            with source_path.open("rb") as src:
                shutil.copyfileobj(src, f)
        os.chmod(staged, INSTALL_MODE)
        os.replace(staged, target_path)
    except OSError as e:
        raise InstallError(f"Failed to install {source_path} to {target_path}: {e}") from e
    finally:
        if staged is not None:
            discard_temp_file(staged)

    logger.info("Installed %s to %s", source_path, target_path)
    return target_path
