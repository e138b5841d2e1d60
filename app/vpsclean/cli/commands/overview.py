"""Disk usage overview commands.

Without a subcommand, prints filesystem usage followed by the largest
directories and files. The scans are time-bounded and print whatever
they collected when the budget runs out.
"""

from typing import Annotated

import typer
from rich.markup import escape

from vpsclean.cleanup.scan import largest_files, top_directories
from vpsclean.cli.display import create_scan_table, create_usage_table, print_warnings
from vpsclean.cli.types import get_config, make_context
from vpsclean.filesystem.usage import SizeToolMissingError, list_filesystem_usage
from vpsclean.utils.formatting import console, print_error, print_info
from vpsclean.utils.runner import BoundedProcessRunner

app = typer.Typer(
    help="Show disk usage and the largest directories and files.",
    invoke_without_command=True,
)

TimeoutOption = Annotated[
    int | None,
    typer.Option("--timeout", "-t", min=1, help="Scan time budget in seconds."),
]

LimitOption = Annotated[
    int,
    typer.Option("--limit", "-l", min=1, help="Number of entries to show."),
]


@app.callback()
def overview(ctx: typer.Context) -> None:
    """Show disk usage and the largest directories and files."""
    if ctx.invoked_subcommand is not None:
        return
    filesystems()
    directories(ctx)
    files(ctx)


@app.command("filesystems")
def filesystems() -> None:
    """Show space and inode usage of mounted filesystems."""
    usage = list_filesystem_usage()
    if not usage:
        print_info("No real filesystems found.")
        return
    console.print(create_usage_table(usage))


@app.command("dirs")
def directories(
    ctx: typer.Context,
    timeout: TimeoutOption = None,
    limit: LimitOption = 15,
    root: Annotated[str, typer.Option("--root", help="Directory to scan.")] = "/",
) -> None:
    """Show the largest directories, two levels deep."""
    context = make_context(ctx)
    budget = timeout or get_config(ctx).scan_timeout_seconds
    print_info(f"Scanning directories under {escape(root)} (up to {budget}s)...")
    try:
        report = top_directories(context, BoundedProcessRunner(), budget, root=root, limit=limit)
    except SizeToolMissingError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    console.print(create_scan_table(f"Largest directories under {root}", report))
    print_warnings(context.drain_warnings())


@app.command("files")
def files(
    ctx: typer.Context,
    timeout: TimeoutOption = None,
    limit: LimitOption = 15,
    min_size_mb: Annotated[
        int | None,
        typer.Option("--min-size-mb", min=1, help="Only list files larger than this."),
    ] = None,
) -> None:
    """Show the largest files on the root filesystem."""
    config = get_config(ctx)
    context = make_context(ctx)
    budget = timeout or config.scan_timeout_seconds
    threshold = min_size_mb or config.large_file_min_size_mb
    print_info(f"Searching for files larger than {threshold} MB (up to {budget}s)...")
    report = largest_files(context, BoundedProcessRunner(), budget, threshold, limit=limit)
    console.print(create_scan_table(f"Files larger than {threshold} MB", report))
    print_warnings(context.drain_warnings())
