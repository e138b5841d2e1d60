"""Install, update and uninstall commands."""

import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from vpsclean import __version__
from vpsclean.cli.display import print_warnings
from vpsclean.cli.types import (
    confirm_or_abort,
    get_config,
    is_dry_run,
    make_context,
    make_operator,
)
from vpsclean.core.config import ConfigError
from vpsclean.update.manager import UpdateError, UpdateManager
from vpsclean.utils.atomic import InstallError
from vpsclean.utils.formatting import (
    console,
    print_dry_run,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Install, update or uninstall vps-cleaner.",
    no_args_is_help=True,
)


def _manager(ctx: typer.Context) -> UpdateManager:
    config = get_config(ctx)
    return UpdateManager(__version__, config.update_url, Path(config.install_path))


@app.command("check")
def check(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Install an available update without asking."),
    ] = False,
) -> None:
    """Check for a new release and optionally install it."""
    manager = _manager(ctx)
    if manager.transfer_tool() is None:
        print_warning("curl/wget not available, cannot check for updates.")
        raise typer.Exit(code=1)

    print_info("Checking for updates...")
    try:
        result = manager.check_version()
    except UpdateError as e:
        print_warning(escape(f"Could not fetch remote version: {e}"))
        raise typer.Exit(code=1) from e

    try:
        manager.record_check(get_config(ctx), config_path=(ctx.obj or {}).get("config_path"))
    except ConfigError as e:
        print_warning(escape(f"Could not record update check time: {e}"))

    console.print(f"  Current:  {escape(result.current_version)}")
    console.print(f"  Latest:   {escape(result.remote_version)}")

    if not result.update_available:
        print_success("Already on the latest version.")
        return

    print_info(f"A different version ({escape(result.remote_version)}) is available.")
    confirm_or_abort("Download and install update?", yes, is_dry_run(ctx))

    context = make_context(ctx)
    try:
        outcome = manager.apply_update(result, context)
    except InstallError as e:
        print_error(escape(f"Failed to install update to {manager.install_path}: {e}"))
        raise typer.Exit(code=1) from e

    print_warnings(context.drain_warnings())
    if context.dry_run:
        print_dry_run(escape(outcome.message))
    elif outcome.success:
        print_success(escape(outcome.message))
    else:
        print_error(escape(outcome.message))
        raise typer.Exit(code=1)


@app.command("install")
def install(
    ctx: typer.Context,
    source: Annotated[
        Path | None,
        typer.Option("--source", help="Release file to install. Default: the running one."),
    ] = None,
) -> None:
    """Install vps-cleaner at the configured install path."""
    manager = _manager(ctx)
    context = make_context(ctx)
    script = source or Path(sys.argv[0]).resolve()
    try:
        outcome = manager.install_self(script, context)
    except InstallError as e:
        print_error(escape(f"Failed to copy to {manager.install_path}: {e}"))
        raise typer.Exit(code=1) from e

    if context.dry_run:
        print_dry_run(escape(outcome.message))
    else:
        print_success(escape(outcome.message))


@app.command("uninstall")
def uninstall(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove the installed executable."""
    manager = _manager(ctx)
    if not manager.install_path.is_file():
        print_info(escape(f"Not installed at {manager.install_path}."))
        return

    confirm_or_abort(f"Remove {manager.install_path}?", yes, is_dry_run(ctx))
    operator = make_operator(ctx)
    result = manager.uninstall(operator)
    print_warnings(operator.context.drain_warnings())

    if result.dry_run:
        print_dry_run(escape(f"Would remove {manager.install_path}"))
    elif result.success:
        print_success(escape(f"Uninstalled from {manager.install_path}"))
    else:
        print_error(escape(f"Failed to remove {manager.install_path}: {result.error}"))
        raise typer.Exit(code=1)
