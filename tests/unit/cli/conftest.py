"""Fixtures for CLI tests."""

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture(autouse=True)
def quiet_main_callback() -> Iterator[MagicMock]:
    """Keep the main callback away from /var/log, signals and the network.

    Yields the mocked UpdateManager class used for the background check.
    """
    with (
        patch("vpsclean.cli.main.setup_action_log"),
        patch("vpsclean.cli.main.install_interrupt_handlers"),
        patch("vpsclean.cli.main.UpdateManager") as manager_cls,
    ):
        manager_cls.return_value.auto_check.return_value = None
        yield manager_cls
