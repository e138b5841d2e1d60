"""Unit tests for UpdateManager.

Network transfers are replaced by a fake runner that writes a prepared
payload wherever curl would have written it.
"""

import zipapp
from collections.abc import Iterator, Sequence
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from vpsclean.core.config import CleanerConfig, ConfigError, load_config
from vpsclean.core.context import CleanupContext, WarningKind
from vpsclean.core.interrupt import registered_temp_files
from vpsclean.filesystem.operator import FilesystemOperator
from vpsclean.update.manager import (
    AUTO_CHECK_INTERVAL,
    RemoteFetchError,
    UpdateManager,
    VersionMarkerNotFoundError,
    extract_version,
    extract_version_from_text,
    release_version,
)
from vpsclean.update.models import UpdateCheck, UpdateState
from vpsclean.utils.atomic import InstallError
from vpsclean.utils.runner import BoundedRunResult, RunStatus

URL = "https://example.invalid/vps-cleaner.sh"
INSTALLED = '#!/bin/bash\nSCRIPT_VERSION="1.0.0"\necho old\n'


def _release(version: str) -> str:
    return f'#!/bin/bash\nSCRIPT_VERSION="{version}"\necho new\n'


class FakeRunner:
    """Stand-in for BoundedProcessRunner serving a fixed payload."""

    def __init__(
        self,
        payload: str,
        returncode: int = 0,
        status: RunStatus = RunStatus.COMPLETED,
    ) -> None:
        self.payload = payload
        self.returncode = returncode
        self.status = status
        self.calls: list[tuple[float, list[str]]] = []

    def run(self, timeout_seconds: float, command: Sequence[str]) -> BoundedRunResult:
        args = list(command)
        self.calls.append((timeout_seconds, args))
        if "-o" in args:
            Path(args[args.index("-o") + 1]).write_text(self.payload)
            return BoundedRunResult("", self.returncode, self.status)
        return BoundedRunResult(self.payload, self.returncode, self.status)


@pytest.fixture(autouse=True)
def curl_only() -> Iterator[MagicMock]:
    """Pretend curl is the only transfer tool installed."""
    with patch("vpsclean.update.manager.command_exists", side_effect=lambda t: t == "curl") as m:
        yield m


@pytest.fixture(autouse=True)
def no_action_log() -> Iterator[MagicMock]:
    with patch("vpsclean.update.manager.log_action") as mock_log:
        yield mock_log


@pytest.fixture
def install_path(tmp_path: Path) -> Path:
    """Installed executable at version 1.0.0."""
    path = tmp_path / "bin" / "vps-cleaner"
    path.parent.mkdir()
    path.write_text(INSTALLED)
    path.chmod(0o755)
    return path


def _manager(install_path: Path, runner: FakeRunner) -> UpdateManager:
    return UpdateManager("1.0.0", URL, install_path, runner=runner)  # type: ignore[arg-type]


class TestExtractVersion:
    """Tests for version marker extraction."""

    def test_shell_marker(self, tmp_path: Path) -> None:
        script = tmp_path / "script"
        script.write_text('#!/bin/bash\nSCRIPT_VERSION="9.8.7"\n')

        assert extract_version(script) == "9.8.7"

    def test_python_marker(self) -> None:
        assert extract_version_from_text('__version__ = "2.1.0"\n') == "2.1.0"

    def test_empty_marker(self) -> None:
        """An empty marker is found but empty."""
        assert extract_version_from_text('SCRIPT_VERSION=""') == ""

    def test_missing_marker(self, tmp_path: Path) -> None:
        script = tmp_path / "script"
        script.write_text("#!/bin/bash\necho hi\n")

        with pytest.raises(VersionMarkerNotFoundError):
            extract_version(script)

    def test_unreadable_file(self, tmp_path: Path) -> None:
        with pytest.raises(VersionMarkerNotFoundError):
            extract_version(tmp_path / "missing")


class TestFetchRemoteVersion:
    """Tests for fetch_remote_version and check_version."""

    def test_fetches_with_curl(self, install_path: Path) -> None:
        runner = FakeRunner(_release("1.1.0"))
        manager = _manager(install_path, runner)

        assert manager.fetch_remote_version(10) == "1.1.0"
        timeout, args = runner.calls[0]
        assert args == ["curl", "-fsSL", "--max-time", "10", URL]
        assert timeout > 10

    def test_falls_back_to_wget(self, install_path: Path, curl_only: MagicMock) -> None:
        curl_only.side_effect = lambda t: t == "wget"
        runner = FakeRunner(_release("1.1.0"))

        _manager(install_path, runner).fetch_remote_version(10)

        assert runner.calls[0][1] == ["wget", "-q", "--timeout=10", "-O", "-", URL]

    def test_no_transfer_tool(self, install_path: Path, curl_only: MagicMock) -> None:
        curl_only.side_effect = lambda t: False

        with pytest.raises(RemoteFetchError, match="Neither curl nor wget"):
            _manager(install_path, FakeRunner("")).fetch_remote_version()

    @pytest.mark.parametrize(
        ("runner", "message"),
        [
            (FakeRunner("", 124, RunStatus.TIMED_OUT), "timed out"),
            (FakeRunner("", 22), "exit code 22"),
            (FakeRunner("<html>not found</html>"), "No version marker"),
            (FakeRunner('#!/bin/bash\nSCRIPT_VERSION=""\n'), "Empty version marker"),
        ],
    )
    def test_failures(self, install_path: Path, runner: FakeRunner, message: str) -> None:
        with pytest.raises(RemoteFetchError, match=message):
            _manager(install_path, runner).fetch_remote_version()

    def test_check_states(self, install_path: Path) -> None:
        """check_version moves to UPDATE_AVAILABLE or UP_TO_DATE."""
        newer = _manager(install_path, FakeRunner(_release("1.1.0")))
        same = _manager(install_path, FakeRunner(_release("1.0.0")))

        assert newer.check_version().update_available is True
        assert newer.state == UpdateState.UPDATE_AVAILABLE
        assert same.check_version().update_available is False
        assert same.state == UpdateState.UP_TO_DATE

    def test_different_version_is_an_update(self, install_path: Path) -> None:
        """Any remote version different from the local one counts."""
        manager = _manager(install_path, FakeRunner(_release("0.9.0")))

        assert manager.check_version().update_available is True

    def test_check_failure_state(self, install_path: Path) -> None:
        manager = _manager(install_path, FakeRunner("", 6))

        with pytest.raises(RemoteFetchError):
            manager.check_version()
        assert manager.state == UpdateState.FAILED


class TestValidate:
    """Tests for validate()."""

    def test_matching_version(self, tmp_path: Path, install_path: Path) -> None:
        staged = tmp_path / "staged"
        staged.write_text(_release("1.2.3"))

        assert _manager(install_path, FakeRunner("")).validate(staged, "1.2.3") is True

    def test_version_mismatch(self, tmp_path: Path, install_path: Path) -> None:
        staged = tmp_path / "staged"
        staged.write_text(_release("1.2.3"))

        assert _manager(install_path, FakeRunner("")).validate(staged, "2.0.0") is False

    def test_not_a_script(self, tmp_path: Path, install_path: Path) -> None:
        staged = tmp_path / "staged"
        staged.write_text('SCRIPT_VERSION="1.2.3"\n')

        assert _manager(install_path, FakeRunner("")).validate(staged, "1.2.3") is False

    def test_empty_version(self, tmp_path: Path, install_path: Path) -> None:
        staged = tmp_path / "staged"
        staged.write_text('#!/bin/sh\nSCRIPT_VERSION=""\n')

        assert _manager(install_path, FakeRunner("")).validate(staged, "") is False

    def test_zipapp_release(self, tmp_path: Path, install_path: Path) -> None:
        """An uncompressed zipapp bundle of the package is a valid release."""
        package = tmp_path / "bundle" / "vpsclean"
        package.mkdir(parents=True)
        (package / "__init__.py").write_text('__version__ = "1.2.3"\n')
        staged = tmp_path / "vps-cleaner.pyz"
        zipapp.create_archive(
            package.parent, staged, interpreter="/usr/bin/env python3", main="vpsclean:main"
        )

        assert release_version(staged) == "1.2.3"
        assert _manager(install_path, FakeRunner("")).validate(staged, "1.2.3") is True


class TestApplyUpdate:
    """Tests for apply_update()."""

    def test_installs_validated_release(
        self, install_path: Path, context: CleanupContext, no_action_log: MagicMock
    ) -> None:
        manager = _manager(install_path, FakeRunner(_release("2.0.0")))

        outcome = manager.apply_update(UpdateCheck("1.0.0", "2.0.0"), context)

        assert outcome.state == UpdateState.DONE
        assert outcome.installed_path == install_path
        assert extract_version(install_path) == "2.0.0"
        assert registered_temp_files() == []
        no_action_log.assert_called_once_with("update", "updated-to-2.0.0", 0)

    def test_invalid_payload_leaves_target(
        self, install_path: Path, context: CleanupContext
    ) -> None:
        """A payload whose version differs from the check is rejected."""
        manager = _manager(install_path, FakeRunner(_release("2.0.1")))

        outcome = manager.apply_update(UpdateCheck("1.0.0", "2.0.0"), context)

        assert outcome.success is False
        assert install_path.read_text() == INSTALLED
        assert context.has_warnings(WarningKind.INVALID_UPDATE)
        assert registered_temp_files() == []

    def test_download_failure_leaves_target(
        self, install_path: Path, context: CleanupContext
    ) -> None:
        manager = _manager(install_path, FakeRunner(_release("2.0.0"), returncode=22))

        outcome = manager.apply_update(UpdateCheck("1.0.0", "2.0.0"), context)

        assert outcome.state == UpdateState.FAILED
        assert install_path.read_text() == INSTALLED
        assert context.has_warnings(WarningKind.TOOL_FAILURE)

    def test_empty_download(self, install_path: Path, context: CleanupContext) -> None:
        manager = _manager(install_path, FakeRunner(""))

        outcome = manager.apply_update(UpdateCheck("1.0.0", "2.0.0"), context)

        assert outcome.state == UpdateState.FAILED
        assert "empty" in context.warnings[0].message

    @patch("vpsclean.update.manager.atomic_install", side_effect=InstallError("rename failed"))
    def test_install_error_propagates(
        self, _install: MagicMock, install_path: Path, context: CleanupContext
    ) -> None:
        """Install failures are fatal and the staged file is still removed."""
        manager = _manager(install_path, FakeRunner(_release("2.0.0")))

        with pytest.raises(InstallError):
            manager.apply_update(UpdateCheck("1.0.0", "2.0.0"), context)

        assert manager.state == UpdateState.FAILED
        assert install_path.read_text() == INSTALLED
        assert registered_temp_files() == []

    def test_up_to_date(self, install_path: Path, context: CleanupContext) -> None:
        runner = FakeRunner("")
        outcome = _manager(install_path, runner).apply_update(
            UpdateCheck("1.0.0", "1.0.0"), context
        )

        assert outcome.state == UpdateState.UP_TO_DATE
        assert runner.calls == []

    def test_dry_run_downloads_nothing(
        self, install_path: Path, dry_context: CleanupContext
    ) -> None:
        runner = FakeRunner(_release("2.0.0"))

        outcome = _manager(install_path, runner).apply_update(
            UpdateCheck("1.0.0", "2.0.0"), dry_context
        )

        assert outcome.state == UpdateState.UPDATE_AVAILABLE
        assert runner.calls == []
        assert install_path.read_text() == INSTALLED


class TestInstallAndUninstall:
    """Tests for install_self() and uninstall()."""

    def test_install_self(
        self, tmp_path: Path, context: CleanupContext, no_action_log: MagicMock
    ) -> None:
        source = tmp_path / "vps-cleaner.sh"
        source.write_text(_release("1.0.0"))
        target = tmp_path / "bin" / "vps-cleaner"
        target.parent.mkdir()

        outcome = UpdateManager("1.0.0", URL, target).install_self(source, context)

        assert outcome.state == UpdateState.DONE
        assert target.read_text() == source.read_text()
        no_action_log.assert_called_once_with("install", "install-1.0.0", 0)

    def test_install_self_dry_run(self, tmp_path: Path, dry_context: CleanupContext) -> None:
        source = tmp_path / "vps-cleaner.sh"
        source.write_text(_release("1.0.0"))
        target = tmp_path / "vps-cleaner"

        outcome = UpdateManager("1.0.0", URL, target).install_self(source, dry_context)

        assert "Would install" in outcome.message
        assert not target.exists()

    @pytest.mark.parametrize(
        "content",
        [
            'print("no shebang")\n__version__ = "1.0.0"\n',
            "#!/usr/bin/env python3\nimport sys\n",
        ],
        ids=["no-shebang", "no-version-marker"],
    )
    def test_install_self_refuses_non_release(
        self, tmp_path: Path, context: CleanupContext, content: str
    ) -> None:
        """Only files a later update could validate are installed."""
        source = tmp_path / "launcher"
        source.write_text(content)
        target = tmp_path / "vps-cleaner"

        with pytest.raises(InstallError, match="not a single-file release"):
            UpdateManager("1.0.0", URL, target).install_self(source, context)

        assert not target.exists()

    def test_uninstall(self, install_path: Path, operator: FilesystemOperator) -> None:
        result = UpdateManager("1.0.0", URL, install_path).uninstall(operator)

        assert result.success is True
        assert not install_path.exists()


class TestAutoCheck:
    """Tests for the background check."""

    NOW = 1_700_000_000

    def test_notice_when_update_available(self, install_path: Path, tmp_path: Path) -> None:
        """A due check reports the newer version and records the time."""
        config_path = tmp_path / "config.toml"
        manager = _manager(install_path, FakeRunner(_release("1.1.0")))

        notice = manager.auto_check(CleanerConfig(), now=self.NOW, config_path=config_path)

        assert notice is not None
        assert "v1.1.0" in notice
        assert "current: v1.0.0" in notice
        assert load_config(config_path).last_update_check == self.NOW

    def test_skipped_within_interval(self, install_path: Path) -> None:
        runner = FakeRunner(_release("1.1.0"))
        config = CleanerConfig(last_update_check=self.NOW - AUTO_CHECK_INTERVAL + 60)

        assert _manager(install_path, runner).auto_check(config, now=self.NOW) is None
        assert runner.calls == []

    def test_skipped_when_not_installed(self, tmp_path: Path) -> None:
        runner = FakeRunner(_release("1.1.0"))
        manager = _manager(tmp_path / "not-installed", runner)

        assert manager.auto_check(CleanerConfig(), now=self.NOW) is None
        assert runner.calls == []

    def test_failure_is_silent(self, install_path: Path, tmp_path: Path) -> None:
        """A failed fetch returns None and leaves the timestamp alone."""
        config_path = tmp_path / "config.toml"
        manager = _manager(install_path, FakeRunner("", 124, RunStatus.TIMED_OUT))

        assert manager.auto_check(CleanerConfig(), now=self.NOW, config_path=config_path) is None
        assert not config_path.exists()

    def test_uses_short_timeout(self, install_path: Path, tmp_path: Path) -> None:
        runner = FakeRunner(_release("1.0.0"))

        _manager(install_path, runner).auto_check(
            CleanerConfig(), now=self.NOW, config_path=tmp_path / "c.toml"
        )

        assert runner.calls[0][1][3] == "5"

    @patch("vpsclean.update.manager.save_config", side_effect=ConfigError("read-only"))
    def test_unwritable_config_is_ignored(self, _save: MagicMock, install_path: Path) -> None:
        manager = _manager(install_path, FakeRunner(_release("1.1.0")))

        assert manager.auto_check(CleanerConfig(), now=self.NOW) is not None
