"""CLI commands for vps-cleaner.

This package contains all subcommand implementations.
"""

from vpsclean.cli.commands import clean, overview, update

__all__ = ["clean", "overview", "update"]
