"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from vpsclean.core.context import CleanupContext
from vpsclean.core.interrupt import cleanup_temp_files
from vpsclean.filesystem.operator import FilesystemOperator
from vpsclean.filesystem.usage import SizeMeter, SizeUnit


@pytest.fixture(autouse=True)
def isolated_xdg_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG config and state directories into the test's tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    return tmp_path


@pytest.fixture(autouse=True)
def clean_temp_registry() -> Iterator[None]:
    """Leave the temp-file registry empty after each test."""
    yield
    cleanup_temp_files()


@pytest.fixture
def context() -> CleanupContext:
    """Live-mode operation context."""
    return CleanupContext()


@pytest.fixture
def dry_context() -> CleanupContext:
    """Dry-run operation context."""
    return CleanupContext(dry_run=True)


@pytest.fixture
def operator(context: CleanupContext) -> FilesystemOperator:
    """Live-mode operator with exact byte accounting."""
    return FilesystemOperator(context, SizeMeter(SizeUnit.BYTES))


@pytest.fixture
def dry_operator(dry_context: CleanupContext) -> FilesystemOperator:
    """Dry-run operator with exact byte accounting."""
    return FilesystemOperator(dry_context, SizeMeter(SizeUnit.BYTES))


@pytest.fixture
def make_measure() -> Callable[..., Callable[[], int]]:
    """Build a fake used-bytes measure returning the given values in order."""

    def _factory(*values: int) -> Callable[[], int]:
        readings = iter(values)
        return lambda: next(readings)

    return _factory


@pytest.fixture
def json_log_dir(tmp_path: Path) -> Path:
    """Directory with two Docker-style json logs and one unrelated file."""
    directory = tmp_path / "containers"
    directory.mkdir()
    (directory / "a-json.log").write_bytes(b"x" * 5)
    (directory / "b-json.log").write_bytes(b"x" * 9)
    (directory / "c.txt").write_bytes(b"x" * 6)
    return directory
