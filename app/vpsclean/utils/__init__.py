"""Utility modules for vps-cleaner.

This module exports commonly used utility functions.
"""

from vpsclean.utils.formatting import (
    console,
    err_console,
    format_size,
    print_dry_run,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from vpsclean.utils.shell import CommandResult, command_exists, run_command

__all__ = [
    "CommandResult",
    "command_exists",
    "console",
    "err_console",
    "format_size",
    "print_dry_run",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "run_command",
]
