"""Bounded external command execution.

Runs an external command or shell pipeline with a wall-clock limit.
When the host provides coreutils/BusyBox ``timeout`` the limit is
delegated to it. Otherwise the command is supervised directly: a
watcher thread signals the child's process group once the budget is
spent, while the main thread waits for the child.

Example:
    >>> runner = BoundedProcessRunner()
    >>> result = runner.run(45, "du -x -d 2 / | sort -rn | head -15")
    >>> if result.timed_out:
    ...     print("scan timed out, showing partial data")
"""

import logging
import os
import signal
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from vpsclean.core.interrupt import discard_temp_file, register_temp_file
from vpsclean.utils.shell import command_exists, shell_argv

logger = logging.getLogger(__name__)

# Exit status reported for a command that ran out of time, matching timeout(1).
TIMEOUT_EXIT_CODE = 124

# Exit status of timeout(1) when it had to escalate to SIGKILL.
KILLED_EXIT_CODE = 128 + signal.SIGKILL

TEMP_PREFIX = "vps-cleaner-run."


class RunStatus(str, Enum):
    """Final state of a bounded run.

    Attributes:
        COMPLETED: The command exited on its own within the budget.
        TIMED_OUT: The budget ran out and the command was terminated.
        KILL_FAILED: The command outlived both SIGTERM and SIGKILL.
    """

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    KILL_FAILED = "kill_failed"


@dataclass(frozen=True, slots=True)
class BoundedRunResult:
    """Outcome of a bounded command execution.

    Attributes:
        output: Captured standard output. May be partial after a timeout.
        returncode: Exit code, or TIMEOUT_EXIT_CODE when none was recorded.
        status: How the run ended.
    """

    output: str
    returncode: int
    status: RunStatus

    @property
    def timed_out(self) -> bool:
        """Check if the run hit its time budget."""
        return self.status != RunStatus.COMPLETED

    @property
    def success(self) -> bool:
        """Check if the command completed with exit code 0."""
        return self.status == RunStatus.COMPLETED and self.returncode == 0


def _signal_group(proc: subprocess.Popen[bytes], sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except (ProcessLookupError, PermissionError):
        pass


class BoundedProcessRunner:
    """Run commands with an enforced wall-clock timeout.

    Attributes:
        _use_native_timeout: Delegate to timeout(1) instead of the watcher.
        _kill_grace: Seconds between SIGTERM and SIGKILL.
    """

    def __init__(
        self,
        use_native_timeout: bool | None = None,
        kill_grace: float = 2.0,
    ) -> None:
        """Initialize the runner.

        Args:
            use_native_timeout: Force (True) or disable (False) use of the
                timeout(1) utility. None detects it on PATH.
            kill_grace: Seconds to wait after SIGTERM before SIGKILL.
        """
        if use_native_timeout is None:
            use_native_timeout = command_exists("timeout")
        self._use_native_timeout = use_native_timeout
        self._kill_grace = kill_grace

    @property
    def uses_native_timeout(self) -> bool:
        """Check if runs are delegated to timeout(1)."""
        return self._use_native_timeout

    def run(self, timeout_seconds: float, command: str | list[str]) -> BoundedRunResult:
        """Run a command, returning within roughly ``timeout_seconds``.

        Args:
            timeout_seconds: Wall-clock budget for the command.
            command: Argument list, or a shell pipeline string.

        Returns:
            BoundedRunResult with captured output and final status.

        Raises:
            ValueError: If timeout_seconds is not positive.
            FileNotFoundError: If the command executable does not exist.
        """
        if timeout_seconds <= 0:
            msg = f"Timeout must be positive, got {timeout_seconds}"
            raise ValueError(msg)

        args = shell_argv(command) if isinstance(command, str) else list(command)
        logger.debug("Bounded run (%ss): %s", timeout_seconds, args)

        if self._use_native_timeout:
            result = self._run_native(timeout_seconds, args)
        else:
            result = self._run_watched(timeout_seconds, args)

        if result.timed_out:
            logger.info("Command timed out after %ss: %s", timeout_seconds, args)
        return result

    def _run_native(self, timeout_seconds: float, args: list[str]) -> BoundedRunResult:
        """Delegate the time limit to timeout(1)."""
        wrapped = [
            "timeout",
            "-k",
            _format_seconds(self._kill_grace),
            _format_seconds(timeout_seconds),
            *args,
        ]
        started = time.monotonic()
        # Backstop in case timeout(1) itself misbehaves.
        backstop = timeout_seconds + self._kill_grace + 5.0
        try:
            proc = subprocess.run(
                wrapped,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                timeout=backstop,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            return BoundedRunResult(
                output=_decode(e.stdout),
                returncode=TIMEOUT_EXIT_CODE,
                status=RunStatus.KILL_FAILED,
            )

        output = _decode(proc.stdout)
        elapsed = time.monotonic() - started
        if proc.returncode == TIMEOUT_EXIT_CODE or (
            proc.returncode == KILLED_EXIT_CODE and elapsed >= timeout_seconds
        ):
            return BoundedRunResult(output, TIMEOUT_EXIT_CODE, RunStatus.TIMED_OUT)
        return BoundedRunResult(output, proc.returncode, RunStatus.COMPLETED)

    def _run_watched(self, timeout_seconds: float, args: list[str]) -> BoundedRunResult:
        """Supervise the child with a watcher thread.

        Output goes to a private temporary file so it survives the
        watcher racing the child's natural exit. The watcher is always
        cancelled and joined and the file always removed.
        """
        fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX)
        out_path = Path(name)
        register_temp_file(out_path)

        finished = threading.Event()
        fired = threading.Event()
        watcher: threading.Thread | None = None
        proc: subprocess.Popen[bytes] | None = None
        returncode: int | None = None
        try:
            with os.fdopen(fd, "wb") as out:
                proc = subprocess.Popen(
                    args,
                    stdout=out,
                    stderr=subprocess.DEVNULL,
                    start_new_session=True,
                )

            watcher = threading.Thread(
                target=self._watch,
                args=(proc, timeout_seconds, finished, fired),
                name="vps-cleaner-watcher",
                daemon=True,
            )
            watcher.start()

            try:
                returncode = proc.wait(timeout=timeout_seconds + 2 * self._kill_grace + 1.0)
            except subprocess.TimeoutExpired:
                returncode = None
            finished.set()
            watcher.join()
            watcher = None

            output = _decode(out_path.read_bytes())
        finally:
            finished.set()
            if watcher is not None:
                watcher.join()
            if proc is not None and returncode is None and proc.poll() is None:
                # The wait never completed: do not leave the group running.
                _signal_group(proc, signal.SIGTERM)
            discard_temp_file(out_path)

        if returncode is None:
            return BoundedRunResult(output, TIMEOUT_EXIT_CODE, RunStatus.KILL_FAILED)
        if fired.is_set():
            return BoundedRunResult(output, TIMEOUT_EXIT_CODE, RunStatus.TIMED_OUT)
        return BoundedRunResult(output, returncode, RunStatus.COMPLETED)

    def _watch(
        self,
        proc: subprocess.Popen[bytes],
        timeout_seconds: float,
        finished: threading.Event,
        fired: threading.Event,
    ) -> None:
        """Terminate the child's process group once the budget is spent."""
        if finished.wait(timeout_seconds):
            return
        if proc.poll() is not None:
            return
        fired.set()
        _signal_group(proc, signal.SIGTERM)
        if finished.wait(self._kill_grace):
            return
        if proc.poll() is None:
            _signal_group(proc, signal.SIGKILL)


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _format_seconds(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"
