"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running git, gh and
other tools with a bounded timeout, plus output formatting helpers.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from .errors import ExternalToolError

DEFAULT_TIMEOUT = 120.0


def run(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> subprocess.CompletedProcess[str]:
    """Run a command and capture its output.

    Args:
        *args: Command and arguments (e.g., "uv", "lock").
        cwd: Working directory, defaults to the current directory.
        check: If True (default), raise ExternalToolError on non-zero exit.
        timeout: Seconds before the command is killed. A timeout is always
                 raised as ExternalToolError, regardless of ``check``.

    Returns:
        CompletedProcess with text stdout/stderr.
    """
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise ExternalToolError(args, None, f"no result after {timeout}s") from exc
    except FileNotFoundError as exc:
        raise ExternalToolError(args, 127, f"{args[0]}: command not found") from exc

    if check and result.returncode != 0:
        raise ExternalToolError(
            args, result.returncode, result.stderr.strip() or result.stdout.strip()
        )
    return result


def git(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> str:
    """Run a git command and return stripped stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
    """
    return run("git", *args, cwd=cwd, check=check, timeout=timeout).stdout.strip()


def gh(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> str:
    """Run a GitHub CLI command and return stripped stdout."""
    return run("gh", *args, cwd=cwd, check=check, timeout=timeout).stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    Goes to stderr so stdout stays clean for --json output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}", file=sys.stderr)


def info(msg: str) -> None:
    """Print an indented progress line under the current step."""
    print(f"  {msg}", file=sys.stderr)


def warn(msg: str) -> None:
    """Print a warning that does not stop the current operation."""
    print(f"WARNING: {msg}", file=sys.stderr)
