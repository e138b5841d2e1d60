"""CLI package for vps-cleaner.

This package contains the Typer application and all subcommands.
"""

from vpsclean.cli.main import app

__all__ = ["app"]
