"""Self-install and self-update."""

from vpsclean.update.manager import (
    DownloadError,
    RemoteFetchError,
    UpdateError,
    UpdateManager,
    VersionMarkerNotFoundError,
    extract_version,
    extract_version_from_text,
    release_version,
)
from vpsclean.update.models import UpdateCheck, UpdateOutcome, UpdateState

__all__ = [
    "DownloadError",
    "RemoteFetchError",
    "UpdateCheck",
    "UpdateError",
    "UpdateManager",
    "UpdateOutcome",
    "UpdateState",
    "VersionMarkerNotFoundError",
    "extract_version",
    "extract_version_from_text",
    "release_version",
]
