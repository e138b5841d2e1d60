"""Main CLI application entry point.

Defines the Typer application and global options.
"""

from pathlib import Path
from typing import Annotated

import typer

from vpsclean import __version__
from vpsclean.cli.commands import clean, overview, update
from vpsclean.core.config import ConfigError, load_config
from vpsclean.core.interrupt import install_interrupt_handlers
from vpsclean.core.logs import setup_action_log, setup_logging
from vpsclean.update.manager import UpdateManager
from vpsclean.utils.formatting import print_error, print_info

# Create main Typer app
app = typer.Typer(
    name="vps-cleaner",
    help="Safe disk cleanup for VPS hosts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"vps-cleaner version {__version__}")
        raise typer.Exit()


def _background_update_notice(ctx: typer.Context, config_path: Path | None) -> None:
    """Print a notice if the daily background check finds a new release."""
    config = ctx.obj["config"]
    manager = UpdateManager(__version__, config.update_url, Path(config.install_path))
    notice = manager.auto_check(config, config_path=config_path)
    if notice:
        print_info(notice)


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show what would be removed without removing anything.",
        ),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            help="Path to config.toml.",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Also write diagnostics to this file.",
        ),
    ] = None,
) -> None:
    """vps-cleaner - Safe disk cleanup for VPS hosts.

    Removes rotated logs, caches, temp files and crash dumps, and reports
    both the data removed and the space the filesystem actually freed.
    """
    setup_logging(verbose=verbose, log_file=log_file)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["dry_run"] = dry_run or config.dry_run
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path

    if ctx.resilient_parsing:
        return

    setup_action_log()
    install_interrupt_handlers()
    if ctx.invoked_subcommand != "update":
        _background_update_notice(ctx, config_path)


# Register commands
app.add_typer(overview.app, name="overview")
app.add_typer(clean.app, name="clean")
app.add_typer(update.app, name="update")


if __name__ == "__main__":
    app()
