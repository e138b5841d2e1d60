"""Data models for the self-update flow."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class UpdateState(str, Enum):
    """Position of an UpdateManager in the update flow.

    Every state can move to FAILED; FAILED never touches the installed
    executable.
    """

    IDLE = "idle"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    DOWNLOADING = "downloading"
    VALIDATING = "validating"
    INSTALLING = "installing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class UpdateCheck:
    """Result of comparing the running version with the remote one.

    Versions are opaque strings compared for equality only.

    Attributes:
        current_version: Version of the running tool.
        remote_version: Version found in the remote resource.
    """

    current_version: str
    remote_version: str

    @property
    def update_available(self) -> bool:
        """Check if the remote version differs from the running one.

        Plain string comparison: a different remote version counts as an
        update even when it is older.
        """
        return self.remote_version != self.current_version


@dataclass(frozen=True, slots=True)
class UpdateOutcome:
    """Final result of an update attempt.

    Attributes:
        state: DONE, FAILED, or UP_TO_DATE when there was nothing to do.
        message: Human readable summary.
        installed_path: Executable that was replaced, if any.
    """

    state: UpdateState
    message: str
    installed_path: Path | None = None

    @property
    def success(self) -> bool:
        """Check if the flow ended without failure."""
        return self.state != UpdateState.FAILED
