"""Logging setup and the action log.

Diagnostics go through the standard logging module with a Rich handler
on stderr. Completed cleanup actions are additionally appended to an
action log (/var/log/vps-cleaner.log, or the state directory when that
is not writable) in the form::

    2024-01-15T10:00:00Z [logs] rotated-clean | freed=1048576
"""

import logging
import time
from pathlib import Path

from rich.logging import RichHandler

from vpsclean.core.paths import DEFAULT_ACTION_LOG_PATH, get_fallback_action_log_path
from vpsclean.utils.formatting import err_console

logger = logging.getLogger(__name__)

ACTION_LOGGER_NAME = "vpsclean.actions"

action_logger = logging.getLogger(ACTION_LOGGER_NAME)


class _UTCFormatter(logging.Formatter):
    converter = time.gmtime


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure diagnostic logging.

    Args:
        verbose: If True, log DEBUG and above to stderr; otherwise WARNING.
        log_file: Optional file receiving all diagnostics at DEBUG level.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handlers: list[logging.Handler] = [
        RichHandler(console=err_console, show_path=False, rich_tracebacks=verbose),
    ]
    handlers[0].setLevel(level)

    if log_file is not None:
        try:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to open log file %s: %s", log_file, e)
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - [%(levelname)s] - %(name)s - %(message)s")
            )
            handlers.append(file_handler)

    root = logging.getLogger("vpsclean")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if (verbose or log_file is not None) else logging.WARNING)

    # The action log keeps its own handler and never reaches the console.
    action_logger.setLevel(logging.INFO)
    action_logger.propagate = False


def setup_action_log(path: Path | None = None) -> Path | None:
    """Attach a file handler to the action logger.

    Tries the given path (default /var/log/vps-cleaner.log) and falls back
    to the state directory. Returns the path in use, or None if neither
    location is writable.
    """
    candidates = [path] if path is not None else [DEFAULT_ACTION_LOG_PATH]
    candidates.append(get_fallback_action_log_path())

    for handler in list(action_logger.handlers):
        action_logger.removeHandler(handler)
        handler.close()

    for candidate in candidates:
        try:
            candidate.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(candidate, mode="a", encoding="utf-8")
        except OSError as e:
            logger.debug("Action log %s not writable: %s", candidate, e)
            continue
        formatter = _UTCFormatter("%(asctime)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%SZ")
        handler.setFormatter(formatter)
        action_logger.addHandler(handler)
        action_logger.setLevel(logging.INFO)
        action_logger.propagate = False
        return candidate

    logger.warning("No writable action log location, actions will not be recorded")
    return None


def log_action(category: str, action: str, bytes_freed: int = 0) -> None:
    """Append one line to the action log.

    Args:
        category: Area of the action (e.g. "logs", "update").
        action: Action identifier (e.g. "rotated-clean").
        bytes_freed: Filesystem-level bytes freed by the action.
    """
    action_logger.info("[%s] %s | freed=%d", category, action, bytes_freed)
