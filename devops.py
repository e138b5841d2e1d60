"""Development tasks for vps-cleaner.

Usage: uv run devops.py <task>
Tasks: fmt, lint, test, bundle, clean
"""

import subprocess
import sys


def _run(commands: list[list[str]]) -> None:
    """Execute a sequence of commands, exiting on first failure."""
    for cmd in commands:
        try:
            subprocess.run(cmd, check=True)  # nosec: B603, B607
        except subprocess.CalledProcessError as e:
            print(f"Command failed: {' '.join(e.cmd)}", file=sys.stderr)
            sys.exit(e.returncode)


def format_code() -> None:
    """Format the codebase with Ruff."""
    _run(
        [
            ["ruff", "format", "app", "tests", "devops.py"],
            ["ruff", "check", "--fix", "app", "tests", "devops.py"],
        ]
    )


def lint() -> None:
    """Check formatting and lint rules without changing files."""
    _run(
        [
            ["ruff", "format", "--check", "app", "tests", "devops.py"],
            ["ruff", "check", "app", "tests", "devops.py"],
        ]
    )


def test() -> None:
    """Run the unit tests with pytest."""
    _run([["uv", "run", "pytest", "-q", *sys.argv[2:]]])


def bundle() -> None:
    """Build the single-file release published for self-update.

    The zipapp is stored uncompressed so the updater can read the
    version marker of vpsclean/__init__.py from the raw file. Runtime
    dependencies are expected on the target host.
    """
    _run(
        [
            ["mkdir", "-p", "dist"],
            [
                "uv",
                "run",
                "python",
                "-m",
                "zipapp",
                "app",
                "--main",
                "vpsclean.cli.main:app",
                "--python",
                "/usr/bin/env python3",
                "--output",
                "dist/vps-cleaner.pyz",
            ],
        ]
    )


def clean() -> None:
    """Remove caches and build artifacts."""
    _run(
        [
            ["find", ".", "-type", "d", "-name", "__pycache__", "-exec", "rm", "-rf", "{}", "+"],
            ["find", ".", "-type", "f", "-name", "*.pyc", "-delete"],
            ["rm", "-rf", ".pytest_cache", ".ruff_cache", "dist", "build"],
        ]
    )


TASKS = {
    "fmt": format_code,
    "lint": lint,
    "test": test,
    "bundle": bundle,
    "clean": clean,
}


def main() -> None:
    """Dispatch the task named on the command line."""
    if len(sys.argv) < 2 or sys.argv[1] not in TASKS:
        print(f"Usage: devops.py <{'|'.join(TASKS)}>", file=sys.stderr)
        sys.exit(2)
    TASKS[sys.argv[1]]()


if __name__ == "__main__":
    main()
