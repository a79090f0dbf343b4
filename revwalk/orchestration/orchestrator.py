"""RevisionWalkOrchestrator: replays a branch commit by commit in a worktree."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from revwalk.core.errors import RevwalkError, WorktreeRemovalFailed
from revwalk.core.models import (
    CommitEvent,
    TerminationReason,
    TestOutcome,
    WalkStarted,
    WalkSummary,
)
from revwalk.domain.code_pattern_matcher import filter_changed_files
from revwalk.infra.sigint_guard import CancellationController
from revwalk.infra.worktree import WorktreeState

if TYPE_CHECKING:
    from revwalk.core.models import RevisionWalk
    from revwalk.core.protocols import CancellationPort, GitClientPort, WalkEventSink
    from revwalk.domain.walk_config import WalkConfig
    from revwalk.infra.test_invoker import TestInvoker
    from revwalk.infra.worktree import WorktreeManager, WorktreeSession

    from .types import WalkOrchestratorConfig

logger = logging.getLogger(__name__)


class RevisionWalkOrchestrator:
    """Validates each commit between a base and a tip in isolation.

    For every commit, oldest first, the worktree is switched to the commit,
    the files changed since the previously processed commit are filtered by
    the configured patterns, and the test command runs against them. Test
    failures are recorded and the walk continues unless stop_on_failure is
    set. The worktree is removed on every exit path.

    Use create_orchestrator() rather than constructing this directly.
    """

    def __init__(
        self,
        *,
        config: WalkOrchestratorConfig,
        walk_config: WalkConfig,
        git: GitClientPort,
        worktrees: WorktreeManager,
        invoker: TestInvoker,
        event_sink: WalkEventSink,
        cancellation: CancellationPort,
        manage_signals: bool = False,
    ) -> None:
        self.config = config
        self.walk_config = walk_config
        self.git = git
        self.worktrees = worktrees
        self.invoker = invoker
        self.event_sink = event_sink
        self.cancellation = cancellation
        self._manage_signals = manage_signals
        self._cancel_reported = False
        self.last_summary: WalkSummary | None = None

    @property
    def stop_on_failure(self) -> bool:
        if self.config.stop_on_failure is not None:
            return self.config.stop_on_failure
        return self.walk_config.stop_on_failure

    def run(self) -> WalkSummary:
        """Run the walk to completion, cancellation, or the first abort.

        Returns:
            WalkSummary describing the run.

        Raises:
            InvalidRange: If the range cannot be resolved (nothing was
                created).
            RevwalkError: Any aborting error, re-raised after the worktree was
                torn down and the summary was emitted.
        """
        controller: CancellationController | None = None
        if (
            self._manage_signals
            and isinstance(self.cancellation, CancellationController)
            and not self.cancellation.installed
        ):
            controller = self.cancellation
            controller.install()
        try:
            return self._run()
        finally:
            if controller is not None:
                controller.restore()

    def resolve_walk(self) -> RevisionWalk:
        """Resolve the configured range without side effects."""
        base = self.config.base or self.git.default_branch()
        return self.git.resolve_commit_range(base, self.config.tip)

    def _run(self) -> WalkSummary:
        self._cancel_reported = False
        walk = self.resolve_walk()
        logger.info(
            "Walking %d commits %s..%s", walk.total, walk.base[:12], walk.tip[:12]
        )
        self.event_sink.on_walk_started(
            WalkStarted(
                total_commits=walk.total,
                base_commit=walk.base,
                tip_commit=walk.tip,
            )
        )

        outcomes: list[TestOutcome] = []
        reason: TerminationReason | None = None
        error: BaseException | None = None
        removal_error: WorktreeRemovalFailed | None = None
        try:
            if self._cancel_requested():
                reason = TerminationReason.CANCELLED
            elif walk.total:
                session = self.worktrees.provision(walk.base)
                self.event_sink.on_worktree_provisioned(session.path)
                self.worktrees.run_setup(
                    session,
                    self.walk_config.setup,
                    on_output=self.event_sink.on_output,
                    on_step_started=self.event_sink.on_setup_step_started,
                    on_step_completed=self.event_sink.on_setup_step_completed,
                )
                reason = self._walk_commits(walk, session, outcomes)
        except (RevwalkError, OSError) as e:
            logger.error("Walk aborted: %s", e)
            error = e
            reason = TerminationReason.ERROR
        finally:
            removal_error = self._teardown()

        cleaned_up = removal_error is None
        if removal_error is not None and error is None:
            reason = TerminationReason.ERROR
            error = removal_error

        summary = WalkSummary.from_outcomes(
            outcomes,
            total=walk.total,
            reason=reason,
            error=_single_line(error) if error is not None else None,
        )
        self.last_summary = summary
        if error is not None:
            self.event_sink.on_fatal_error(_single_line(error), cleaned_up)
        self.event_sink.on_walk_completed(summary)
        if error is not None:
            raise error
        return summary

    def _walk_commits(
        self,
        walk: RevisionWalk,
        session: WorktreeSession,
        outcomes: list[TestOutcome],
    ) -> TerminationReason | None:
        previous = walk.base
        for commit in walk:
            if self._cancel_requested():
                return TerminationReason.CANCELLED

            self.event_sink.on_commit_started(commit, walk.total)
            self.worktrees.checkout(session, commit.sha)
            changed = self.git.diff_files(previous, commit.sha, include_deleted=False)
            relevant = filter_changed_files(changed, self.walk_config.patterns)
            logger.debug(
                "%s: %d changed, %d relevant",
                commit.short_sha,
                len(changed),
                len(relevant),
            )

            # A test run never starts once cancellation has been observed
            if self._cancel_requested():
                return TerminationReason.CANCELLED

            outcome = self.invoker.run(
                commit.sha,
                self.walk_config.test,
                relevant.paths,
                session.path,
                on_output=self.event_sink.on_output,
            )
            outcomes.append(outcome)
            previous = commit.sha
            self.event_sink.on_commit_completed(
                CommitEvent.for_commit(commit, walk.total, relevant, outcome)
            )

            if outcome.failed and self.stop_on_failure and commit.position < walk.total:
                logger.info("Stopping after failing commit %s", commit.short_sha)
                return TerminationReason.STOP_ON_FAILURE
        return None

    def _cancel_requested(self) -> bool:
        if not self.cancellation.is_cancelled():
            return False
        if not self._cancel_reported:
            self._cancel_reported = True
            self.event_sink.on_cancel_observed()
        return True

    def _teardown(self) -> WorktreeRemovalFailed | None:
        """Remove the worktree if this run provisioned one.

        Returns:
            The removal error, or None when no worktree remains on disk.
        """
        session = self.worktrees.session
        if session is None or session.state is WorktreeState.TORN_DOWN:
            return None
        try:
            self.worktrees.teardown(session)
        except WorktreeRemovalFailed as e:
            logger.error("Teardown failed: %s", e)
            return e
        self.event_sink.on_worktree_removed(session.path)
        return None


def _single_line(error: BaseException) -> str:
    text = str(error).strip()
    if not text:
        return type(error).__name__
    return text.splitlines()[0]
