"""Shell execution utilities.

Provides subprocess execution for short, well-behaved external tools
(package managers, journalctl, du). Long-running scans go through
:mod:`vpsclean.utils.runner` instead.
"""

import shutil
import subprocess
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a shell command execution.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        returncode: Exit code of the command.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """Check if command executed successfully."""
        return self.returncode == 0


def run_command(
    args: list[str],
    *,
    check: bool = False,
    timeout: float | None = 60.0,
    cwd: str | None = None,
) -> CommandResult:
    """Execute a command and return the result.

    Args:
        args: Command and arguments to execute.
        check: If True, raise CalledProcessError on non-zero exit.
        timeout: Maximum time in seconds to wait for command.
        cwd: Working directory for the command. If None, uses current directory.

    Returns:
        CommandResult with stdout, stderr, and returncode.

    Raises:
        subprocess.CalledProcessError: If check=True and command fails.
        subprocess.TimeoutExpired: If command exceeds timeout.
        FileNotFoundError: If command executable is not found.
    """
    result = subprocess.run(
        args,
        capture_output=True,
        text=True,
        check=check,
        timeout=timeout,
        cwd=cwd,
    )
    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


def command_exists(name: str) -> bool:
    """Check if a command exists in the system PATH.

    Args:
        name: Command name to check.

    Returns:
        True if command exists, False otherwise.
    """
    return shutil.which(name) is not None


def shell_argv(pipeline: str) -> list[str]:
    """Build the argv that runs a shell pipeline string.

    Uses bash with pipefail so a failing stage is not masked by the last
    stage of the pipeline. Falls back to POSIX sh where bash is missing.

    Args:
        pipeline: Shell pipeline, e.g. ``"du -x / | sort -rn | head"``.

    Returns:
        Argument list suitable for subprocess.
    """
    if command_exists("bash"):
        return ["bash", "-o", "pipefail", "-c", pipeline]
    return ["sh", "-c", pipeline]
