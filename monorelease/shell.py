"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running git, plus the
step header used for console progress output.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from pydantic import BaseModel

from .errors import GitError, GitTimeoutError


class CommandResult(BaseModel):
    """Outcome of a finished process."""

    exit_code: int
    stdout: str
    stderr: str


def run_command(
    *args: str, cwd: str | Path | None = None, timeout: float | None = None
) -> CommandResult:
    """Run a command and capture its output.

    Args:
        *args: Command and arguments (e.g., "git", "log").
        cwd: Working directory for the process.
        timeout: Seconds before the process is killed. None waits forever.

    Raises:
        subprocess.TimeoutExpired: If the timeout elapsed.
        FileNotFoundError: If the executable does not exist.
    """
    result = subprocess.run(
        list(args), cwd=cwd, capture_output=True, text=True, timeout=timeout
    )
    return CommandResult(
        exit_code=result.returncode, stdout=result.stdout, stderr=result.stderr
    )


def git(
    *args: str,
    cwd: str | Path | None = None,
    check: bool = True,
    timeout: float | None = None,
) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        cwd: Repository directory. Defaults to the current directory.
        check: If True (default), raise GitError on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        timeout: Seconds before the git process is killed.

    Returns:
        Stripped stdout from the git command.
    """
    try:
        result = run_command("git", *args, cwd=cwd, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise GitTimeoutError(
            f"git {' '.join(args)} timed out after {timeout}s", command=args
        ) from exc
    except FileNotFoundError as exc:
        raise GitError("git executable not found", command=args) from exc

    if check and result.exit_code != 0:
        raise GitError(
            f"git {' '.join(args)} failed with exit code {result.exit_code}",
            command=args,
            returncode=result.exit_code,
            stderr=result.stderr.strip(),
        )
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of release planning in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
