"""Self-update manager.

Checks a remote resource for a newer release and replaces the installed
executable with it:

    check -> (up to date | update available) -> download -> validate -> install

The payload is downloaded to a private temporary file and validated
before it is installed with atomic_install(), so any failure leaves the
installed executable untouched.
"""

import logging
import os
import re
import tempfile
import time
from pathlib import Path

from vpsclean.core.config import CleanerConfig, ConfigError, save_config
from vpsclean.core.context import CleanupContext, WarningKind
from vpsclean.core.interrupt import discard_temp_file, register_temp_file
from vpsclean.core.logs import log_action
from vpsclean.filesystem.operator import FilesystemActionResult, FilesystemOperator
from vpsclean.update.models import UpdateCheck, UpdateOutcome, UpdateState
from vpsclean.utils.atomic import InstallError, atomic_install
from vpsclean.utils.runner import BoundedProcessRunner
from vpsclean.utils.shell import command_exists

logger = logging.getLogger(__name__)

# Matches SCRIPT_VERSION="x" (shell releases) or __version__ = "x" (Python modules).
VERSION_MARKER = re.compile(
    r"""SCRIPT_VERSION="(?P<shell>[^"]*)"|__version__\s*=\s*["'](?P<py>[^"']*)["']"""
)

SCRIPT_MARKER = b"#!"

# Minimum interval between background checks
AUTO_CHECK_INTERVAL = 86400

AUTO_CHECK_TIMEOUT = 5.0
FETCH_TIMEOUT = 10.0
DOWNLOAD_TIMEOUT = 30.0

# Extra budget on top of the transfer tool's own timeout
_RUNNER_SLACK = 5.0

STAGING_PREFIX = "vps-cleaner-update."


class UpdateError(Exception):
    """Base exception for update failures."""


class VersionMarkerNotFoundError(UpdateError):
    """Raised when a file or payload carries no version marker."""


class RemoteFetchError(UpdateError):
    """Raised when the remote version cannot be fetched."""


class DownloadError(UpdateError):
    """Raised when the update payload cannot be downloaded."""


def extract_version_from_text(text: str) -> str:
    """Return the first version marker value found in ``text``.

    Raises:
        VersionMarkerNotFoundError: If no marker is present. A marker with
            an empty value returns "".
    """
    match = VERSION_MARKER.search(text)
    if match is None:
        raise VersionMarkerNotFoundError("No version marker found")
    return match.group("shell") if match.group("shell") is not None else match.group("py")


def extract_version(path: Path) -> str:
    """Return the version marker value of a file.

    Raises:
        VersionMarkerNotFoundError: If the file has no marker or cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise VersionMarkerNotFoundError(f"Cannot read {path}: {e}") from e
    try:
        return extract_version_from_text(text)
    except VersionMarkerNotFoundError:
        raise VersionMarkerNotFoundError(f"No version marker in {path}") from None


def _is_script(path: Path) -> bool:
    """Check if a file starts with the #! line of an executable script."""
    try:
        with path.open("rb") as f:
            return f.read(len(SCRIPT_MARKER)) == SCRIPT_MARKER
    except OSError as e:
        logger.info("Cannot read %s: %s", path, e)
        return False


def release_version(path: Path) -> str:
    """Return the version of a single-file release.

    A release is a file the updater can later validate: it starts with
    ``#!`` and carries a non-empty version marker.

    Raises:
        InstallError: If ``path`` is not such a release.
    """
    if not _is_script(path):
        raise InstallError(f"{path} is not a single-file release (no #! line)")
    try:
        version = extract_version(path)
    except VersionMarkerNotFoundError as e:
        raise InstallError(f"{path} is not a single-file release: {e}") from e
    if not version:
        raise InstallError(f"{path} is not a single-file release (empty version marker)")
    return version


class UpdateManager:
    """Check for, download, validate and install releases.

    Attributes:
        current_version: Version of the running tool.
        source_url: Remote resource holding the latest release.
        install_path: Location of the installed executable.
        state: Current position in the update flow.
    """

    def __init__(
        self,
        current_version: str,
        source_url: str,
        install_path: Path,
        runner: BoundedProcessRunner | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            current_version: Version of the running tool.
            source_url: Remote resource holding the latest release.
            install_path: Location of the installed executable.
            runner: Runner used for network transfers.
        """
        self.current_version = current_version
        self.source_url = source_url
        self.install_path = install_path
        self.state = UpdateState.IDLE
        self._runner = runner or BoundedProcessRunner()

    @staticmethod
    def transfer_tool() -> str | None:
        """Return the available transfer tool (curl or wget), or None."""
        for tool in ("curl", "wget"):
            if command_exists(tool):
                return tool
        return None

    def _transfer_args(self, timeout: float, output: Path | None = None) -> list[str]:
        tool = self.transfer_tool()
        seconds = f"{timeout:g}"
        if tool == "curl":
            args = ["curl", "-fsSL", "--max-time", seconds, self.source_url]
            return [*args, "-o", str(output)] if output is not None else args
        if tool == "wget":
            target = str(output) if output is not None else "-"
            return ["wget", "-q", f"--timeout={seconds}", "-O", target, self.source_url]
        raise RemoteFetchError("Neither curl nor wget is available")

    def fetch_remote_version(self, timeout: float = FETCH_TIMEOUT) -> str:
        """Fetch the remote resource and extract its version.

        Raises:
            RemoteFetchError: If the transfer fails or times out, or the
                payload has no (or an empty) version marker.
        """
        args = self._transfer_args(timeout)
        try:
            result = self._runner.run(timeout + _RUNNER_SLACK, args)
        except FileNotFoundError as e:
            raise RemoteFetchError(f"{args[0]} is not available") from e

        if result.timed_out:
            raise RemoteFetchError(f"Fetching {self.source_url} timed out")
        if not result.success:
            raise RemoteFetchError(
                f"Fetching {self.source_url} failed with exit code {result.returncode}"
            )

        try:
            version = extract_version_from_text(result.output)
        except VersionMarkerNotFoundError as e:
            raise RemoteFetchError(f"No version marker in {self.source_url}") from e
        if not version:
            raise RemoteFetchError(f"Empty version marker in {self.source_url}")
        return version

    def check_version(self, timeout: float = FETCH_TIMEOUT) -> UpdateCheck:
        """Compare the running version with the remote one.

        Raises:
            RemoteFetchError: If the remote version cannot be determined.
        """
        self.state = UpdateState.CHECKING
        try:
            remote = self.fetch_remote_version(timeout)
        except RemoteFetchError:
            self.state = UpdateState.FAILED
            raise

        check = UpdateCheck(current_version=self.current_version, remote_version=remote)
        self.state = (
            UpdateState.UPDATE_AVAILABLE if check.update_available else UpdateState.UP_TO_DATE
        )
        logger.debug("Version check: current=%s remote=%s", self.current_version, remote)
        return check

    def download_to_staging(self, timeout: float = DOWNLOAD_TIMEOUT) -> Path:
        """Download the remote payload to a private temporary file.

        The file is registered for removal on interrupt. On failure it is
        removed before the error propagates.

        Raises:
            DownloadError: If the transfer fails or the payload is empty.
        """
        fd, name = tempfile.mkstemp(prefix=STAGING_PREFIX)
        os.close(fd)
        staging = Path(name)
        register_temp_file(staging)

        try:
            args = self._transfer_args(timeout, output=staging)
            result = self._runner.run(timeout + _RUNNER_SLACK, args)
        except (RemoteFetchError, FileNotFoundError) as e:
            discard_temp_file(staging)
            raise DownloadError(str(e)) from e

        if not result.success:
            discard_temp_file(staging)
            raise DownloadError(f"Downloading {self.source_url} failed")
        if not staging.exists() or staging.stat().st_size == 0:
            discard_temp_file(staging)
            raise DownloadError(f"Downloaded payload from {self.source_url} is empty")

        return staging

    def validate(self, staging: Path, expected_version: str) -> bool:
        """Check a staged payload before installing it.

        The payload must start with ``#!`` and carry a non-empty version
        marker exactly equal to ``expected_version``.
        """
        if not _is_script(staging):
            logger.info("Staged update %s is not a script", staging)
            return False

        try:
            version = extract_version(staging)
        except VersionMarkerNotFoundError as e:
            logger.info("%s", e)
            return False
        if not version or version != expected_version:
            logger.info("Staged update has version %r, expected %r", version, expected_version)
            return False
        return True

    def apply_update(self, check: UpdateCheck, context: CleanupContext) -> UpdateOutcome:
        """Download, validate and install the release found by ``check``.

        Download and validation failures are recorded as warnings on the
        context and end the flow in FAILED. Under dry-run nothing is
        downloaded.

        Raises:
            InstallError: If the validated payload cannot be installed.
                The installed executable is left untouched.
        """
        if not check.update_available:
            self.state = UpdateState.UP_TO_DATE
            return UpdateOutcome(UpdateState.UP_TO_DATE, "Already on the latest version.")

        if context.dry_run:
            return UpdateOutcome(
                UpdateState.UPDATE_AVAILABLE,
                f"Would update {self.install_path} to v{check.remote_version}",
            )

        self.state = UpdateState.DOWNLOADING
        try:
            staging = self.download_to_staging()
        except DownloadError as e:
            self.state = UpdateState.FAILED
            context.warn(WarningKind.TOOL_FAILURE, str(e))
            return UpdateOutcome(UpdateState.FAILED, "Failed to download update.")

        try:
            self.state = UpdateState.VALIDATING
            if not self.validate(staging, check.remote_version):
                self.state = UpdateState.FAILED
                context.warn(
                    WarningKind.INVALID_UPDATE,
                    f"Downloaded update failed validation (expected v{check.remote_version})",
                )
                return UpdateOutcome(UpdateState.FAILED, "Downloaded update failed validation.")

            self.state = UpdateState.INSTALLING
            try:
                atomic_install(staging, self.install_path)
            except InstallError:
                self.state = UpdateState.FAILED
                raise
        finally:
            discard_temp_file(staging)

        self.state = UpdateState.DONE
        log_action("update", f"updated-to-{check.remote_version}", 0)
        return UpdateOutcome(
            UpdateState.DONE,
            f"Updated to v{check.remote_version}. Restart to use the new version.",
            installed_path=self.install_path,
        )

    def install_self(self, source: Path, context: CleanupContext) -> UpdateOutcome:
        """Install ``source`` (normally the running release) at the install path.

        Only files accepted by release_version() are installed, so the
        installed executable can be version-checked by later updates.

        Raises:
            InstallError: If ``source`` is not a release, or the copy,
                chmod or rename fails.
        """
        version = release_version(source)
        if context.dry_run:
            return UpdateOutcome(
                UpdateState.IDLE, f"Would install v{version} from {source} to {self.install_path}"
            )

        atomic_install(source, self.install_path)
        log_action("install", f"install-{version}", 0)
        return UpdateOutcome(
            UpdateState.DONE,
            f"Installed v{version} to {self.install_path}",
            installed_path=self.install_path,
        )

    def uninstall(self, operator: FilesystemOperator) -> FilesystemActionResult:
        """Remove the installed executable through the guarded operator."""
        result = operator.delete_file(self.install_path)
        if result.success and not result.dry_run:
            log_action("install", "uninstall", 0)
        return result

    def record_check(
        self,
        config: CleanerConfig,
        now: float | None = None,
        config_path: Path | None = None,
    ) -> CleanerConfig:
        """Persist the time of a successful version check.

        Raises:
            ConfigError: If the configuration cannot be written.
        """
        current_time = int(now if now is not None else time.time())
        updated = config.model_copy(update={"last_update_check": current_time})
        save_config(updated, config_path)
        return updated

    def auto_check(
        self,
        config: CleanerConfig,
        now: float | None = None,
        config_path: Path | None = None,
    ) -> str | None:
        """Run the background version check if one is due.

        The check runs only when the tool is installed and at least a day
        has passed since the last successful check. Every failure is
        logged at debug level and otherwise ignored.

        Returns:
            A notice to show the user when a different version is
            available, None otherwise.
        """
        if not self.install_path.exists() or self.transfer_tool() is None:
            return None

        current_time = int(now if now is not None else time.time())
        if current_time - config.last_update_check < AUTO_CHECK_INTERVAL:
            return None

        try:
            check = self.check_version(AUTO_CHECK_TIMEOUT)
        except UpdateError as e:
            logger.debug("Background update check failed: %s", e)
            return None

        try:
            self.record_check(config, current_time, config_path)
        except ConfigError as e:
            logger.debug("Could not record update check time: %s", e)

        if not check.update_available:
            return None
        return (
            f"Update available: v{check.remote_version} (current: v{check.current_version}). "
            "Run 'vps-cleaner update check' to install it."
        )
