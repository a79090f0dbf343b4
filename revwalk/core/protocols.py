"""Protocol definitions for revwalk's seams.

These protocols let the orchestrator and domain code depend on structural
interfaces instead of the concrete infra implementations, so tests can
inject the in-memory fakes from tests/fakes.

- CommandResultProtocol / CommandRunnerPort: subprocess execution
- GitClientPort: the git operations the walk needs
- WalkEventSink: receiver for the walk's event stream
- CancellationPort: read side of the cancellation flag
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

    from revwalk.core.models import (
        ChangedFileSet,
        Commit,
        CommitEvent,
        RevisionWalk,
        WalkStarted,
        WalkSummary,
    )

# =============================================================================
# Command Runner Protocols
# =============================================================================


@runtime_checkable
class CommandResultProtocol(Protocol):
    """Protocol for command execution results.

    Matches the interface of revwalk.infra.tools.command_runner.CommandResult.
    """

    command: list[str]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool
    duration_seconds: float

    @property
    def ok(self) -> bool: ...

    def stdout_tail(self, max_chars: int = 800, max_lines: int = 20) -> str: ...

    def stderr_tail(self, max_chars: int = 800, max_lines: int = 20) -> str: ...


@runtime_checkable
class CommandRunnerPort(Protocol):
    """Protocol for abstracting command execution.

    The canonical implementation is CommandRunner in
    revwalk/infra/tools/command_runner.py. Both methods block until the
    process exits. A command whose executable cannot be started raises
    OSError (FileNotFoundError, PermissionError) rather than returning a
    result.
    """

    def run(
        self,
        cmd: list[str],
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cwd: Path | None = None,
    ) -> CommandResultProtocol:
        """Run a command capturing stdout and stderr separately."""
        ...

    def run_streaming(
        self,
        cmd: list[str],
        on_output: Callable[[str], None] | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cwd: Path | None = None,
    ) -> CommandResultProtocol:
        """Run a command forwarding each combined output line to on_output."""
        ...


# =============================================================================
# Git Client Protocol
# =============================================================================


@runtime_checkable
class GitClientPort(Protocol):
    """Protocol for the git operations a revision walk needs.

    The canonical implementation is GitClient in revwalk/infra/git_client.py.
    """

    repo_path: Path

    def resolve_ref(self, ref: str) -> str: ...

    def default_branch(self) -> str: ...

    def resolve_commit_range(self, base: str, tip: str = "HEAD") -> RevisionWalk: ...

    def diff_files(
        self, sha_from: str, sha_to: str, *, include_deleted: bool = True
    ) -> ChangedFileSet: ...

    def create_worktree(self, path: Path, start_sha: str) -> None: ...

    def checkout(self, path: Path, sha: str) -> None: ...

    def remove_worktree(self, path: Path) -> None: ...

    def list_worktrees(self) -> list[Path]: ...


# =============================================================================
# Event Sink Protocol
# =============================================================================


@runtime_checkable
class WalkEventSink(Protocol):
    """Protocol for receiving revision walk events.

    Implementations handle presentation (console, logging) while the
    orchestrator focuses on coordination. All methods are synchronous and
    called from the walk's single thread of control.
    """

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def on_walk_started(self, event: WalkStarted) -> None:
        """Called once the commit range is resolved, before any side effect."""
        ...

    def on_walk_completed(self, summary: WalkSummary) -> None:
        """Called at the very end of a run, after teardown."""
        ...

    def on_fatal_error(self, message: str, cleaned_up: bool) -> None:
        """Called when the run aborts.

        Args:
            message: Single-line cause.
            cleaned_up: Whether the worktree was confirmed removed.
        """
        ...

    def on_cancel_observed(self) -> None:
        """Called when the walk notices a cancellation request."""
        ...

    # -------------------------------------------------------------------------
    # Worktree lifecycle
    # -------------------------------------------------------------------------

    def on_worktree_provisioned(self, path: Path) -> None: ...

    def on_worktree_removed(self, path: Path) -> None: ...

    def on_setup_step_started(self, name: str) -> None: ...

    def on_setup_step_completed(self, name: str, duration_seconds: float) -> None: ...

    # -------------------------------------------------------------------------
    # Per-commit events
    # -------------------------------------------------------------------------

    def on_commit_started(self, commit: Commit, total: int) -> None: ...

    def on_output(self, line: str) -> None:
        """Called for each line of live setup/test output."""
        ...

    def on_commit_completed(self, event: CommitEvent) -> None: ...


# =============================================================================
# Cancellation Protocol
# =============================================================================


@runtime_checkable
class CancellationPort(Protocol):
    """Read side of the cancellation flag.

    The canonical implementation is CancellationController in
    revwalk/infra/sigint_guard.py.
    """

    def is_cancelled(self) -> bool: ...
