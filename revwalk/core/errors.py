"""Error taxonomy for revwalk.

Every failure that crosses a component boundary (Git Client, Worktree
Manager, Test Invoker, config loading) is raised as a subclass of
RevwalkError so the orchestrator and CLI can decide between aborting the run
and continuing with the next commit without inspecting subprocess details.

Hierarchy:
- RevwalkError
  - GitCommandError: git exited non-zero (carries argv, exit code, stderr)
    - WorktreeCreationFailed
    - CheckoutFailed
    - WorktreeRemovalFailed
  - InvalidRange: base/tip cannot be resolved or base is not an ancestor
  - SetupStepFailed: a configured setup step failed
  - TestInvocationFailed: the test command could not be started at all
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

# Truncation for stderr embedded in exception messages
_MAX_STDERR_IN_MESSAGE = 200


class RevwalkError(Exception):
    """Base class for all errors raised by revwalk components."""


class GitCommandError(RevwalkError):
    """Raised when a git invocation exits non-zero or cannot be started.

    Attributes:
        command: The full argv that was executed.
        returncode: Process exit status (127 when git could not be started).
        stderr: Captured standard error of the failed invocation.
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip()
        if detail:
            if len(detail) > _MAX_STDERR_IN_MESSAGE:
                detail = detail[:_MAX_STDERR_IN_MESSAGE] + "..."
            message = f"{message}: {detail}"
        super().__init__(message)


class WorktreeCreationFailed(GitCommandError):
    """Raised when the isolated worktree cannot be created."""


class CheckoutFailed(GitCommandError):
    """Raised when a commit cannot be checked out inside the worktree."""


class WorktreeRemovalFailed(GitCommandError):
    """Raised when the worktree directory is still present after all retries."""


class InvalidRange(RevwalkError):
    """Raised when the commit range from base to tip cannot be resolved.

    Example:
        >>> raise InvalidRange("base 'abc123' is not an ancestor of HEAD")
        InvalidRange: base 'abc123' is not an ancestor of HEAD
    """

    def __init__(self, message: str, *, base: str | None = None) -> None:
        self.base = base
        super().__init__(message)


class SetupStepFailed(RevwalkError):
    """Raised when a setup step exits non-zero or cannot be started.

    Attributes:
        step_name: Name of the failing step as declared in revwalk.yaml.
        exit_code: Exit status, or None when the executable could not start.
        output: Captured combined output of the step.
    """

    def __init__(
        self, step_name: str, exit_code: int | None, output: str = ""
    ) -> None:
        self.step_name = step_name
        self.exit_code = exit_code
        self.output = output
        if exit_code is None:
            message = f"Setup step '{step_name}' could not be started"
        else:
            message = f"Setup step '{step_name}' failed with exit code {exit_code}"
        super().__init__(message)


class TestInvocationFailed(RevwalkError):
    """Raised when the test command cannot be spawned (e.g. missing executable).

    A test command that runs and exits non-zero is a failed outcome, not
    this error.
    """

    __test__ = False

    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command = tuple(command)
        self.reason = reason
        executable = self.command[0] if self.command else "<empty>"
        super().__init__(f"Could not start test command '{executable}': {reason}")
