"""Interrupt handling and in-flight temporary file tracking.

Temporary artifacts (scan output captures, update downloads) are
registered here while they exist. An operator-sent SIGINT or SIGTERM
removes whatever is still registered before the process exits with
status 130.
"""

import logging
import signal
import sys
import threading
from pathlib import Path
from types import FrameType

logger = logging.getLogger(__name__)

# Exit status used when the process is interrupted.
INTERRUPTED_EXIT_CODE = 130

# Reentrant: the signal handler runs on the main thread, which may
# already hold the lock inside register_temp_file or discard_temp_file.
_lock = threading.RLock()
_temp_files: set[Path] = set()


def register_temp_file(path: Path) -> None:
    """Track a temporary file so an interrupt can remove it."""
    with _lock:
        _temp_files.add(path)


def discard_temp_file(path: Path) -> None:
    """Remove a temporary file from disk and stop tracking it.

    Missing files are ignored.
    """
    with _lock:
        _temp_files.discard(path)
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove temporary file %s: %s", path, e)


def registered_temp_files() -> list[Path]:
    """Return the currently tracked temporary files."""
    with _lock:
        return sorted(_temp_files)


def cleanup_temp_files() -> int:
    """Remove every tracked temporary file.

    Returns:
        Number of files that were tracked.
    """
    with _lock:
        paths = list(_temp_files)
        _temp_files.clear()

    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove temporary file %s: %s", path, e)
    return len(paths)


def _handle_interrupt(signum: int, frame: FrameType | None) -> None:
    removed = cleanup_temp_files()
    logger.debug("Received signal %d, removed %d temporary file(s)", signum, removed)
    # Imported lazily: formatting builds Rich consoles at import time.
    from vpsclean.utils.formatting import print_warning

    print_warning("Interrupted. Exiting.")
    sys.exit(INTERRUPTED_EXIT_CODE)


def install_interrupt_handlers() -> None:
    """Bind SIGINT and SIGTERM to the cleanup-and-exit handler.

    Must be called from the main thread.
    """
    signal.signal(signal.SIGINT, _handle_interrupt)
    signal.signal(signal.SIGTERM, _handle_interrupt)
