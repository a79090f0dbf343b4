"""Base event sink implementations.

BaseEventSink implements every WalkEventSink method as a no-op so concrete
sinks only override the events they care about. NullEventSink is the silent
sink used by programmatic callers and tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from revwalk.core.models import Commit, CommitEvent, WalkStarted, WalkSummary


class BaseEventSink:
    """No-op implementation of WalkEventSink."""

    def on_walk_started(self, event: WalkStarted) -> None:
        pass

    def on_walk_completed(self, summary: WalkSummary) -> None:
        pass

    def on_fatal_error(self, message: str, cleaned_up: bool) -> None:
        pass

    def on_cancel_observed(self) -> None:
        pass

    def on_worktree_provisioned(self, path: Path) -> None:
        pass

    def on_worktree_removed(self, path: Path) -> None:
        pass

    def on_setup_step_started(self, name: str) -> None:
        pass

    def on_setup_step_completed(self, name: str, duration_seconds: float) -> None:
        pass

    def on_commit_started(self, commit: Commit, total: int) -> None:
        pass

    def on_output(self, line: str) -> None:
        pass

    def on_commit_completed(self, event: CommitEvent) -> None:
        pass


class NullEventSink(BaseEventSink):
    """Silent sink.

    Example:
        orchestrator = create_orchestrator(config, deps=WalkDependencies(
            event_sink=NullEventSink()
        ))
        summary = orchestrator.run()  # No console output
    """
