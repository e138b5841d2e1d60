"""Cleanup commands.

Each command confirms (unless --yes or --dry-run), runs one cleanup
routine and prints what was removed versus what the filesystem freed.
"""

from collections.abc import Callable
from typing import Annotated

import typer
from rich.markup import escape

from vpsclean.cleanup import tasks
from vpsclean.cleanup.packages import PACKAGE_MANAGERS, PackageManagerAdapter, get_package_manager
from vpsclean.cli.display import print_operation_result
from vpsclean.cli.types import (
    confirm_or_abort,
    get_config,
    is_dry_run,
    make_context,
    make_operator,
)
from vpsclean.core.context import OperationResult
from vpsclean.filesystem.usage import SizeToolMissingError
from vpsclean.utils.formatting import print_error

app = typer.Typer(
    help="Remove logs, caches, temp files and crash dumps.",
    no_args_is_help=True,
)

YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip confirmation prompt."),
]

ManagerOption = Annotated[
    str | None,
    typer.Option(
        "--manager",
        "-m",
        help=f"Package manager ({', '.join(a.name for a in PACKAGE_MANAGERS)}). "
        "Default: first one installed.",
    ),
]


def _run(
    ctx: typer.Context,
    question: str,
    yes: bool,
    routine: Callable[[], OperationResult],
) -> None:
    """Confirm, run a cleanup routine and print its summary."""
    confirm_or_abort(question, yes, is_dry_run(ctx))
    try:
        result = routine()
    except SizeToolMissingError as e:
        print_error(escape(f"{e}. Install coreutils (du) and retry."))
        raise typer.Exit(code=1) from e
    print_operation_result(result)


def _adapter(name: str | None) -> PackageManagerAdapter | None:
    if name is None:
        return None
    try:
        return get_package_manager(name)
    except KeyError as e:
        print_error(f"Unknown package manager: {escape(name)}")
        raise typer.Exit(code=1) from e


@app.command("rotated-logs")
def rotated_logs(ctx: typer.Context, yes: YesOption = False) -> None:
    """Delete rotated and compressed logs under /var/log."""
    operator = make_operator(ctx)
    _run(
        ctx,
        "Delete rotated logs (*.gz, *.1, *.old, ...) in /var/log?",
        yes,
        lambda: tasks.clean_rotated_logs(operator),
    )


@app.command("large-logs")
def large_logs(
    ctx: typer.Context,
    threshold_mb: Annotated[
        int | None,
        typer.Option("--threshold-mb", min=1, help="Size threshold in MB."),
    ] = None,
    yes: YesOption = False,
) -> None:
    """Truncate log files above a size threshold to zero length."""
    threshold = threshold_mb or get_config(ctx).log_truncate_threshold_mb
    operator = make_operator(ctx)
    _run(
        ctx,
        f"Truncate log files larger than {threshold} MB in /var/log?",
        yes,
        lambda: tasks.truncate_large_logs(operator, threshold),
    )


@app.command("docker-logs")
def docker_logs(ctx: typer.Context, yes: YesOption = False) -> None:
    """Truncate Docker container json logs in place."""
    operator = make_operator(ctx)
    _run(
        ctx,
        "Truncate all Docker container logs?",
        yes,
        lambda: tasks.truncate_docker_logs(operator),
    )


@app.command("temp")
def temp(
    ctx: typer.Context,
    days: Annotated[
        int | None,
        typer.Option("--days", min=0, help="Minimum age in days."),
    ] = None,
    yes: YesOption = False,
) -> None:
    """Delete old files from /tmp and /var/tmp."""
    age = days if days is not None else get_config(ctx).temp_file_age_days
    operator = make_operator(ctx)
    _run(
        ctx,
        f"Delete temp files older than {age} days?",
        yes,
        lambda: tasks.clean_old_temp_files(operator, age),
    )


@app.command("crash-dumps")
def crash_dumps(ctx: typer.Context, yes: YesOption = False) -> None:
    """Remove crash dumps from /var/crash."""
    operator = make_operator(ctx)
    _run(
        ctx,
        "Remove everything in /var/crash?",
        yes,
        lambda: tasks.clean_crash_dumps(operator),
    )


@app.command("package-cache")
def package_cache(
    ctx: typer.Context,
    manager: ManagerOption = None,
    yes: YesOption = False,
) -> None:
    """Empty the package manager download cache."""
    adapter = _adapter(manager)
    operator = make_operator(ctx)
    _run(
        ctx,
        "Clean the package manager cache?",
        yes,
        lambda: tasks.clean_package_cache(operator, adapter),
    )


@app.command("orphans")
def orphans(
    ctx: typer.Context,
    manager: ManagerOption = None,
    yes: YesOption = False,
) -> None:
    """Remove packages that are no longer required."""
    adapter = _adapter(manager)
    context = make_context(ctx)
    _run(
        ctx,
        "Remove orphaned packages?",
        yes,
        lambda: tasks.remove_orphan_packages(context, adapter),
    )


@app.command("journal")
def journal(
    ctx: typer.Context,
    days: Annotated[
        int | None,
        typer.Option("--days", min=1, help="Days of journal to keep."),
    ] = None,
    yes: YesOption = False,
) -> None:
    """Vacuum the systemd journal."""
    retention = days or get_config(ctx).journal_retention_days
    context = make_context(ctx)
    _run(
        ctx,
        f"Drop journal entries older than {retention} days?",
        yes,
        lambda: tasks.vacuum_journal(context, retention),
    )


@app.command("quick")
def quick(
    ctx: typer.Context,
    manager: ManagerOption = None,
    yes: YesOption = False,
) -> None:
    """Run the safe everyday cleanup sequence.

    Rotated logs, package cache, old temp files, thumbnail caches,
    trash and crash dumps.
    """
    adapter = _adapter(manager)
    config = get_config(ctx)
    operator = make_operator(ctx)
    _run(
        ctx,
        "Proceed with Quick Clean?",
        yes,
        lambda: tasks.quick_clean(operator, config, adapter),
    )


@app.command("deep")
def deep(
    ctx: typer.Context,
    manager: ManagerOption = None,
    yes: YesOption = False,
) -> None:
    """Run every cleanup area in one sequence.

    The quick clean steps plus orphaned package removal and a journal
    vacuum. A failing step is reported and the next one still runs.
    """
    adapter = _adapter(manager)
    config = get_config(ctx)
    operator = make_operator(ctx)
    _run(
        ctx,
        "Start Full Deep Clean?",
        yes,
        lambda: tasks.deep_clean(operator, config, adapter),
    )
