"""Exception types raised by monorelease."""

from __future__ import annotations


class MonoreleaseError(Exception):
    """Base class for all monorelease errors."""


class GitError(MonoreleaseError):
    """A git invocation failed.

    Attributes:
        command: The git arguments that were run.
        returncode: Process exit code (None if the process never ran).
        stderr: Captured standard error, stripped.
    """

    def __init__(
        self,
        message: str,
        *,
        command: tuple[str, ...] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base}\n{self.stderr}" if self.stderr else base


class GitTimeoutError(GitError):
    """A git invocation exceeded the caller-supplied timeout."""


class ShallowCloneError(GitError):
    """The requested range reaches past the history of a shallow clone."""


class WorkspaceError(MonoreleaseError):
    """Workspace packages could not be discovered."""
