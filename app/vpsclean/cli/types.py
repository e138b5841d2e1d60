"""Shared helpers for CLI commands.

Commands read the global options stored on the Typer context by the
main callback and build the per-operation CleanupContext from them.
"""

import typer

from vpsclean.core.config import CleanerConfig
from vpsclean.core.context import CleanupContext
from vpsclean.filesystem.operator import FilesystemOperator
from vpsclean.utils.formatting import print_info


def get_config(ctx: typer.Context) -> CleanerConfig:
    """Return the configuration loaded by the main callback."""
    obj = ctx.obj or {}
    config = obj.get("config")
    return config if isinstance(config, CleanerConfig) else CleanerConfig()


def is_dry_run(ctx: typer.Context) -> bool:
    """Check if the global --dry-run option (or config) is active."""
    obj = ctx.obj or {}
    return bool(obj.get("dry_run", False))


def make_context(ctx: typer.Context) -> CleanupContext:
    """Build a fresh operation context from the global options."""
    return CleanupContext(dry_run=is_dry_run(ctx))


def make_operator(ctx: typer.Context) -> FilesystemOperator:
    """Build a filesystem operator bound to a fresh operation context."""
    return FilesystemOperator(make_context(ctx))


def confirm_or_abort(question: str, yes: bool, dry_run: bool) -> None:
    """Ask for confirmation unless ``--yes`` or dry-run; exit 0 on refusal."""
    if yes or dry_run:
        return
    if not typer.confirm(question, default=False):
        print_info("Cancelled.")
        raise typer.Exit(code=0)
