"""Unit tests for the protected path guard."""

from pathlib import Path

import pytest
from vpsclean.filesystem.protected import (
    PROTECTED_PATHS,
    PathClassification,
    canonicalize,
    classify_path,
    is_safe_path,
)


class TestProtectedPaths:
    """Tests for the protected path set."""

    @pytest.mark.parametrize("path", PROTECTED_PATHS)
    def test_every_listed_path_is_protected(self, path: str) -> None:
        """No listed path is ever safe."""
        assert is_safe_path(path) is False
        assert classify_path(path) == PathClassification.PROTECTED

    def test_root_is_protected(self) -> None:
        """The filesystem root is protected."""
        assert is_safe_path("/") is False

    def test_trailing_slash_is_protected(self) -> None:
        """A trailing slash does not bypass the guard."""
        assert is_safe_path("/etc/") is False

    def test_dotdot_resolving_to_protected_is_protected(self) -> None:
        """Paths canonicalizing to a protected path are protected."""
        assert is_safe_path("/var/log/../../etc") is False
        assert is_safe_path("/usr/local/bin/..") is False

    def test_children_are_safe(self) -> None:
        """The guard is an exact match: children of protected paths are safe."""
        assert is_safe_path("/etc/foo") is True
        assert is_safe_path("/var/log") is True
        assert is_safe_path("/usr/local/bin/vps-cleaner") is True

    def test_empty_path_is_protected(self) -> None:
        """An empty path never reaches the cwd."""
        assert classify_path("") == PathClassification.PROTECTED

    def test_symlink_to_protected_is_protected(self, tmp_path: Path) -> None:
        """A symlink is judged by its target."""
        link = tmp_path / "sneaky"
        link.symlink_to("/etc")

        assert is_safe_path(link) is False

    def test_tmp_path_is_safe(self, tmp_path: Path) -> None:
        """Ordinary directories are safe."""
        assert is_safe_path(tmp_path / "cache") is True


class TestCanonicalize:
    """Tests for canonicalize()."""

    def test_nonexistent_path_resolves(self) -> None:
        """Canonicalization does not require existence."""
        assert canonicalize("/nonexistent/a/../b") == "/nonexistent/b"

    def test_accepts_path_objects(self, tmp_path: Path) -> None:
        """Path-like objects are accepted."""
        assert canonicalize(tmp_path) == str(tmp_path.resolve())
