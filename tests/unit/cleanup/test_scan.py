"""Unit tests for the overview disk scans.

The runner is mocked so that timeouts and partial output can be
simulated without walking a real filesystem.
"""

from unittest.mock import MagicMock

from vpsclean.cleanup.scan import (
    COMMAND_NOT_FOUND_EXIT_CODE,
    ScanEntry,
    largest_files,
    parse_size_lines,
    top_directories,
)
from vpsclean.core.context import CleanupContext, WarningKind
from vpsclean.filesystem.usage import SizeMeter, SizeUnit
from vpsclean.utils.runner import TIMEOUT_EXIT_CODE, BoundedRunResult, RunStatus

DU_OUTPUT = "4096\t/var/log\n1048576\t/var/lib\n512\t/srv\n"


def _runner(output: str, returncode: int = 0, status: RunStatus = RunStatus.COMPLETED) -> MagicMock:
    runner = MagicMock()
    runner.run.return_value = BoundedRunResult(output, returncode, status)
    return runner


class TestParseSizeLines:
    """Tests for parse_size_lines function."""

    def test_tab_and_space_separated(self) -> None:
        entries = parse_size_lines("10\t/a\n20 /b c\n")

        assert entries == [ScanEntry("/a", 10), ScanEntry("/b c", 20)]

    def test_cut_off_line_dropped(self) -> None:
        """A truncated last line from a killed scan is ignored."""
        assert parse_size_lines("10\t/a\n20") == [ScanEntry("/a", 10)]

    def test_multiplier(self) -> None:
        assert parse_size_lines("3\t/a", 1024) == [ScanEntry("/a", 3072)]


class TestTopDirectories:
    """Tests for top_directories function."""

    def test_sorted_and_limited(self, context: CleanupContext) -> None:
        """Largest entries come first and the limit applies."""
        runner = _runner(DU_OUTPUT)

        report = top_directories(context, runner, 45, limit=2, meter=SizeMeter(SizeUnit.BYTES))

        assert [e.path for e in report.entries] == ["/var/lib", "/var/log"]
        assert report.timed_out is False
        runner.run.assert_called_once_with(45, ["du", "-x", "-b", "-d", "2", "/"])

    def test_kilobyte_du(self, context: CleanupContext) -> None:
        """Without byte support du -k output is scaled."""
        runner = _runner("4\t/srv\n")

        report = top_directories(context, runner, 45, meter=SizeMeter(SizeUnit.KILOBYTES))

        assert report.entries[0].size_bytes == 4096
        assert "-k" in runner.run.call_args.args[1]

    def test_timeout_returns_partial(self, context: CleanupContext) -> None:
        """A timed out scan keeps its entries and warns."""
        runner = _runner("4096\t/var/log\n1048", TIMEOUT_EXIT_CODE, RunStatus.TIMED_OUT)

        report = top_directories(context, runner, 1, meter=SizeMeter(SizeUnit.BYTES))

        assert report.timed_out is True
        assert report.entries == (ScanEntry("/var/log", 4096),)
        assert context.has_warnings(WarningKind.TIMEOUT)
        assert "partial" in context.warnings[0].message

    def test_missing_du(self, context: CleanupContext) -> None:
        runner = MagicMock()
        runner.run.side_effect = FileNotFoundError("du")

        report = top_directories(context, runner, 45, meter=SizeMeter(SizeUnit.BYTES))

        assert report.entries == ()
        assert context.has_warnings(WarningKind.TOOL_FAILURE)


class TestLargestFiles:
    """Tests for largest_files function."""

    def test_find_arguments(self, context: CleanupContext) -> None:
        """find stays on one filesystem and filters by size."""
        runner = _runner("209715200 /srv/backup.tar\n")

        report = largest_files(context, runner, 45, 100)

        args = runner.run.call_args.args[1]
        assert args[:3] == ["find", "/", "-xdev"]
        assert "+100M" in args
        assert report.entries == (ScanEntry("/srv/backup.tar", 209715200),)

    def test_command_not_found(self, context: CleanupContext) -> None:
        """Exit 127 with no output is reported as a tool failure."""
        runner = _runner("", COMMAND_NOT_FOUND_EXIT_CODE)

        report = largest_files(context, runner, 45, 100)

        assert report.entries == ()
        assert context.has_warnings(WarningKind.TOOL_FAILURE)

    def test_partial_errors_still_report(self, context: CleanupContext) -> None:
        """Permission errors (exit 1) do not discard found files."""
        runner = _runner("300 /a\n", 1)

        report = largest_files(context, runner, 45, 100)

        assert report.entries == (ScanEntry("/a", 300),)
        assert context.has_warnings() is False
