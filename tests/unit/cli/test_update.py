"""Unit tests for the install, update and uninstall commands."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner
from vpsclean.cli.main import app
from vpsclean.update.manager import RemoteFetchError
from vpsclean.update.models import UpdateCheck, UpdateOutcome, UpdateState
from vpsclean.utils.atomic import InstallError

runner = CliRunner()


@pytest.fixture
def manager() -> Iterator[MagicMock]:
    """Mocked UpdateManager as seen by the update commands."""
    with patch("vpsclean.cli.commands.update.UpdateManager") as manager_cls:
        instance = manager_cls.return_value
        instance.transfer_tool.return_value = "curl"
        instance.install_path = Path("/usr/local/bin/vps-cleaner")
        yield instance


class TestUpdateCheck:
    """Tests for update check."""

    def test_no_transfer_tool(self, manager: MagicMock) -> None:
        manager.transfer_tool.return_value = None

        result = runner.invoke(app, ["update", "check"])

        assert result.exit_code == 1
        assert "curl/wget not available" in result.output

    def test_fetch_failure(self, manager: MagicMock) -> None:
        manager.check_version.side_effect = RemoteFetchError("timed out")

        result = runner.invoke(app, ["update", "check"])

        assert result.exit_code == 1
        assert "Could not fetch remote version" in result.output

    def test_up_to_date(self, manager: MagicMock) -> None:
        manager.check_version.return_value = UpdateCheck("1.0.0", "1.0.0")

        result = runner.invoke(app, ["update", "check"])

        assert result.exit_code == 0
        assert "Already on the latest version." in result.output
        manager.record_check.assert_called_once()
        manager.apply_update.assert_not_called()

    def test_installs_after_confirmation(self, manager: MagicMock) -> None:
        manager.check_version.return_value = UpdateCheck("1.0.0", "2.0.0")
        manager.apply_update.return_value = UpdateOutcome(UpdateState.DONE, "Updated to v2.0.0.")

        result = runner.invoke(app, ["update", "check"], input="y\n")

        assert result.exit_code == 0
        assert "Updated to v2.0.0." in result.output

    def test_declined(self, manager: MagicMock) -> None:
        manager.check_version.return_value = UpdateCheck("1.0.0", "2.0.0")

        result = runner.invoke(app, ["update", "check"], input="n\n")

        assert result.exit_code == 0
        manager.apply_update.assert_not_called()

    def test_failed_validation_exits_1(self, manager: MagicMock) -> None:
        manager.check_version.return_value = UpdateCheck("1.0.0", "2.0.0")
        manager.apply_update.return_value = UpdateOutcome(
            UpdateState.FAILED, "Downloaded update failed validation."
        )

        result = runner.invoke(app, ["update", "check", "--yes"])

        assert result.exit_code == 1
        assert "failed validation" in result.output

    def test_install_error_exits_1(self, manager: MagicMock) -> None:
        manager.check_version.return_value = UpdateCheck("1.0.0", "2.0.0")
        manager.apply_update.side_effect = InstallError("rename failed")

        result = runner.invoke(app, ["update", "check", "--yes"])

        assert result.exit_code == 1
        assert "Failed to install update" in result.output


class TestInstallAndUninstall:
    """Tests against a real install path under tmp_path."""

    @pytest.fixture
    def config_file(self, tmp_path: Path) -> Path:
        config_file = tmp_path / "config.toml"
        config_file.write_text(f'install_path = "{tmp_path / "bin" / "vps-cleaner"}"\n')
        (tmp_path / "bin").mkdir()
        return config_file

    def test_install_from_source(self, tmp_path: Path, config_file: Path) -> None:
        source = tmp_path / "vps-cleaner.sh"
        source.write_text('#!/bin/bash\nSCRIPT_VERSION="1.0.0"\n')

        result = runner.invoke(
            app, ["--config", str(config_file), "update", "install", "--source", str(source)]
        )

        assert result.exit_code == 0
        installed = tmp_path / "bin" / "vps-cleaner"
        assert installed.read_text() == source.read_text()
        assert installed.stat().st_mode & 0o111

    def test_install_refuses_launcher_without_version(
        self, tmp_path: Path, config_file: Path
    ) -> None:
        """A source the updater could not version-check is not installed."""
        source = tmp_path / "vps-cleaner"
        source.write_text("#!/usr/bin/python3\nfrom vpsclean.cli.main import app\napp()\n")

        result = runner.invoke(
            app, ["--config", str(config_file), "update", "install", "--source", str(source)]
        )

        assert result.exit_code == 1
        assert "not a single-file release" in " ".join(result.output.split())
        assert not (tmp_path / "bin" / "vps-cleaner").exists()

    def test_install_missing_source(self, tmp_path: Path, config_file: Path) -> None:
        result = runner.invoke(
            app,
            ["--config", str(config_file), "update", "install", "--source", str(tmp_path / "x")],
        )

        assert result.exit_code == 1

    def test_uninstall(self, tmp_path: Path, config_file: Path) -> None:
        installed = tmp_path / "bin" / "vps-cleaner"
        installed.write_text("#!/bin/bash\n")

        result = runner.invoke(app, ["--config", str(config_file), "update", "uninstall", "-y"])

        assert result.exit_code == 0
        assert not installed.exists()

    def test_uninstall_dry_run(self, tmp_path: Path, config_file: Path) -> None:
        installed = tmp_path / "bin" / "vps-cleaner"
        installed.write_text("#!/bin/bash\n")

        result = runner.invoke(app, ["--config", str(config_file), "-n", "update", "uninstall"])

        assert result.exit_code == 0
        assert installed.exists()
        assert "[dry-run]" in result.output

    def test_uninstall_not_installed(self, config_file: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "update", "uninstall"])

        assert result.exit_code == 0
        assert "Not installed" in result.output
