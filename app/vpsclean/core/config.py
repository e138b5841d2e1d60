"""Configuration model and TOML persistence.

Configuration is stored in ~/.config/vps-cleaner/config.toml. All keys
are optional; a missing file yields the defaults. Values are validated
with pydantic so the rest of the tool reads already-typed settings.
"""

import logging
import tomllib
from pathlib import Path
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vpsclean.core.paths import DEFAULT_INSTALL_PATH, get_config_path
from vpsclean.utils.atomic import atomic_write

logger = logging.getLogger(__name__)

# Single-file zipapp release polled for new versions
DEFAULT_UPDATE_URL = (
    "https://github.com/WeOneGuy/vps-cleaner/releases/latest/download/vps-cleaner.pyz"
)


class CleanerConfig(BaseModel):
    """Settings for vps-cleaner.

    Attributes:
        dry_run: Report what would be removed without removing anything.
        journal_retention_days: Days of systemd journal to keep when vacuuming.
        log_truncate_threshold_mb: Log files above this size are truncation candidates.
        large_file_min_size_mb: Minimum size for the large file search.
        temp_file_age_days: Temp files older than this are removed.
        last_update_check: Unix timestamp of the last successful update check.
        scan_timeout_seconds: Budget for full filesystem scans.
        update_url: Remote resource carrying the latest release.
        install_path: Location of the installed executable.
    """

    model_config = ConfigDict(extra="forbid")

    dry_run: bool = False
    journal_retention_days: Annotated[int, Field(ge=1, le=3650)] = 7
    log_truncate_threshold_mb: Annotated[int, Field(ge=1)] = 50
    large_file_min_size_mb: Annotated[int, Field(ge=1)] = 100
    temp_file_age_days: Annotated[int, Field(ge=0)] = 7
    last_update_check: Annotated[int, Field(ge=0)] = 0
    scan_timeout_seconds: Annotated[
        int,
        Field(ge=1, le=3600, description="Timeout for filesystem scans (1-3600)"),
    ] = 45
    update_url: str = DEFAULT_UPDATE_URL
    install_path: str = str(DEFAULT_INSTALL_PATH)


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_config(path: Path | None = None) -> CleanerConfig:
    """Load configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default path.

    Returns:
        Validated CleanerConfig. Defaults if the file does not exist.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or fails validation.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config at %s, using defaults", config_path)
        return CleanerConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return CleanerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_config(config: CleanerConfig, path: Path | None = None) -> Path:
    """Save configuration to a TOML file atomically.

    Args:
        config: The configuration to save.
        path: Path to save to. If None, uses the default path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    data = tomli_w.dumps(config.model_dump()).encode("utf-8")

    try:
        atomic_write(config_path, data)
    except OSError as e:
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path
