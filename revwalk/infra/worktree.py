"""Git worktree lifecycle for a revision walk.

The walk replays commits in a detached worktree so the user's checkout is
never touched. WorktreeManager owns the single WorktreeSession of a run and
is the only component that creates, switches, or deletes it.

Worktree paths follow the format: {worktree_dir}/{repo_name}-{run_id}
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from revwalk.core.errors import (
    GitCommandError,
    SetupStepFailed,
    WorktreeCreationFailed,
    WorktreeRemovalFailed,
)
from revwalk.infra.io.config import is_within

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from revwalk.core.protocols import CommandRunnerPort, GitClientPort
    from revwalk.domain.walk_config import SetupStep

logger = logging.getLogger(__name__)

# Hex digits of the per-run suffix in worktree directory names
RUN_ID_LENGTH = 8


class WorktreeState(Enum):
    """State of the walk's worktree."""

    UNINITIALIZED = "uninitialized"  # Path chosen, not yet created
    PROVISIONED = "provisioned"  # Created at the base commit
    ACTIVE = "active"  # Setup steps completed
    TORN_DOWN = "torn_down"  # Removed (terminal)


@dataclass
class WorktreeSession:
    """The worktree a walk runs in, with state tracking."""

    path: Path
    """Absolute path of the worktree directory."""

    base_sha: str
    """Commit the worktree was created at."""

    state: WorktreeState = field(default=WorktreeState.UNINITIALIZED)
    head: str | None = None
    """Commit currently checked out."""

    error: str | None = None
    """Last creation or removal error."""


class WorktreeManager:
    """Creates, switches, and removes the walk's worktree.

    Args:
        git: Git client for the repository being walked.
        runner: Command runner used for setup steps.
        worktree_dir: Parent directory for worktrees; must not be inside the
            repository.
    """

    def __init__(
        self,
        git: GitClientPort,
        runner: CommandRunnerPort,
        worktree_dir: Path,
    ) -> None:
        self.git = git
        self.runner = runner
        self.worktree_dir = worktree_dir
        self._session: WorktreeSession | None = None
        self._name_pattern = re.compile(
            rf"{re.escape(self.path_prefix)}[0-9a-f]{{{RUN_ID_LENGTH}}}"
        )

    @property
    def session(self) -> WorktreeSession | None:
        return self._session

    @property
    def path_prefix(self) -> str:
        return f"{self.git.repo_path.name}-"

    def new_path(self) -> Path:
        run_id = uuid.uuid4().hex[:RUN_ID_LENGTH]
        return self.worktree_dir / f"{self.path_prefix}{run_id}"

    def provision(self, base_sha: str) -> WorktreeSession:
        """Create a fresh worktree checked out at base_sha.

        The session is recorded before git runs so that teardown covers a
        partially created directory.

        Raises:
            WorktreeCreationFailed: If a session is already open, the path
                would be inside the repository, or git fails.
        """
        self._ensure_no_open_session()

        path = self.new_path().absolute()
        if is_within(path, self.git.repo_path):
            raise WorktreeCreationFailed(
                f"Worktree path {path} must not be inside the repository"
            )

        session = WorktreeSession(path=path, base_sha=base_sha)
        self._session = session
        try:
            self.git.create_worktree(path, base_sha)
        except WorktreeCreationFailed as e:
            session.error = str(e)
            raise

        session.state = WorktreeState.PROVISIONED
        session.head = base_sha
        logger.info("Provisioned worktree %s at %s", path, base_sha[:12])
        return session

    def _ensure_no_open_session(self) -> None:
        session = self._session
        if session is not None and session.state is not WorktreeState.TORN_DOWN:
            raise WorktreeCreationFailed(
                f"A worktree is already open at {session.path}"
            )

    def run_setup(
        self,
        session: WorktreeSession,
        steps: Sequence[SetupStep],
        on_output: Callable[[str], None] | None = None,
        on_step_started: Callable[[str], None] | None = None,
        on_step_completed: Callable[[str, float], None] | None = None,
    ) -> None:
        """Run setup steps in declared order with the worktree as cwd.

        Raises:
            SetupStepFailed: At the first step that cannot start or exits
                non-zero. Later steps are not run.
        """
        for step in steps:
            if on_step_started is not None:
                on_step_started(step.name)
            logger.debug("Setup step %s: %s", step.name, step.argv)
            try:
                result = self.runner.run_streaming(
                    step.argv,
                    on_output=on_output,
                    timeout=step.timeout,
                    cwd=session.path,
                )
            except OSError as e:
                raise SetupStepFailed(step.name, None, str(e)) from e

            if not result.ok:
                raise SetupStepFailed(step.name, result.returncode, result.stdout_tail())
            if on_step_completed is not None:
                on_step_completed(step.name, result.duration_seconds)

        session.state = WorktreeState.ACTIVE

    def checkout(self, session: WorktreeSession, sha: str) -> None:
        """Check out sha in the worktree (detached)."""
        self.git.checkout(session.path, sha)
        session.head = sha

    def teardown(self, session: WorktreeSession) -> None:
        """Remove the worktree from any state. Repeated calls are no-ops.

        Raises:
            WorktreeRemovalFailed: If the directory could not be removed. The
                session keeps its state so teardown can be retried.
        """
        if session.state is WorktreeState.TORN_DOWN:
            return
        try:
            self.git.remove_worktree(session.path)
        except WorktreeRemovalFailed as e:
            session.error = str(e)
            raise
        except GitCommandError as e:
            session.error = str(e)
            raise WorktreeRemovalFailed(
                f"Could not remove worktree {session.path}",
                command=e.command,
                returncode=e.returncode,
                stderr=e.stderr,
            ) from e
        session.state = WorktreeState.TORN_DOWN
        logger.info("Removed worktree %s", session.path)

    def owns(self, path: Path) -> bool:
        """Whether path is a worktree this repository's runs would create."""
        return is_within(path, self.worktree_dir) and bool(
            self._name_pattern.fullmatch(path.name)
        )

    def cleanup_stale_worktrees(self) -> int:
        """Remove worktrees left behind by killed runs of this repository.

        Only directories named exactly {repo_name}-{8 hex digits} count, so
        runs of another repository sharing the worktree directory are left
        alone.

        Returns:
            Number of worktrees removed.
        """
        candidates: set[Path] = set()
        for path in self.git.list_worktrees():
            if self.owns(path):
                candidates.add(path.resolve())

        # Directories whose git metadata is already gone
        if self.worktree_dir.is_dir():
            for child in self.worktree_dir.iterdir():
                if child.is_dir() and self.owns(child):
                    candidates.add(child.resolve())

        active = self._session.path.resolve() if self._session is not None else None
        cleaned = 0
        for path in sorted(candidates):
            if active is not None and path == active:
                continue
            logger.info("Removing stale worktree %s", path)
            self.git.remove_worktree(path)
            cleaned += 1
        return cleaned
