"""Path management for vps-cleaner.

This module provides standardized paths for configuration and state,
following the XDG Base Directory Specification, plus the fixed system
locations the tool installs into and logs to.

XDG defaults:
- Config: ~/.config/vps-cleaner/
- State: ~/.local/state/vps-cleaner/
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "vps-cleaner"

# Fixed install location of the executable (atomic replace target)
DEFAULT_INSTALL_PATH = Path("/usr/local/bin") / APP_NAME

# System-wide action log
DEFAULT_ACTION_LOG_PATH = Path("/var/log") / f"{APP_NAME}.log"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/vps-cleaner/ (or XDG_CONFIG_HOME/vps-cleaner/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory path.

    Returns:
        Path to ~/.local/state/vps-cleaner/ (or XDG_STATE_HOME/vps-cleaner/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_config_path() -> Path:
    """Get the configuration file path.

    Returns:
        Path to ~/.config/vps-cleaner/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_fallback_action_log_path() -> Path:
    """Get the action log path used when /var/log is not writable.

    Returns:
        Path to ~/.local/state/vps-cleaner/actions.log.
    """
    return get_state_dir() / "actions.log"
