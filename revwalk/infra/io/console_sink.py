"""Console event sink implementation for RevisionWalkOrchestrator.

Provides ConsoleEventSink which prints walk events to the terminal using
the log helpers from log_output/console.py and renders the final results
table with tabulate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tabulate import tabulate

from revwalk.core.models import OutcomeStatus, TerminationReason
from revwalk.infra.io.base_sink import BaseEventSink
from revwalk.infra.io.log_output.console import (
    Colors,
    is_verbose_enabled,
    log,
    log_output_line,
    log_verbose,
    truncate_text,
)

if TYPE_CHECKING:
    from pathlib import Path

    from revwalk.core.models import Commit, CommitEvent, WalkStarted, WalkSummary


_STATUS_STYLE = {
    OutcomeStatus.PASSED: ("✓", Colors.GREEN),
    OutcomeStatus.FAILED: ("✗", Colors.RED),
    OutcomeStatus.SKIPPED: ("○", Colors.MUTED),
}

_REASON_TEXT = {
    TerminationReason.CANCELLED: "cancelled",
    TerminationReason.STOP_ON_FAILURE: "stopped on first failure",
    TerminationReason.ERROR: "aborted on error",
}


class ConsoleEventSink(BaseEventSink):
    """Event sink that prints walk progress to the console.

    Test and setup output is echoed live only in verbose mode; otherwise the
    tail of a failing commit's output is printed once the commit completes.

    Example:
        sink = ConsoleEventSink()
        deps = WalkDependencies(event_sink=sink)
        summary = create_orchestrator(config, deps=deps).run()
    """

    def __init__(self, show_table: bool = True) -> None:
        self.show_table = show_table
        self._events: list[CommitEvent] = []

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def on_walk_started(self, event: WalkStarted) -> None:
        self._events = []
        log(
            "→",
            f"[START] {event.total_commits} commit(s) "
            f"{event.base_commit[:12]}..{event.tip_commit[:12]}",
            Colors.BOLD,
        )

    def on_walk_completed(self, summary: WalkSummary) -> None:
        if self.show_table and self._events:
            print(format_results_table(self._events))

        counts = (
            f"{summary.processed}/{summary.total} processed: "
            f"{summary.passed} passed, {summary.failed} failed, "
            f"{summary.skipped} skipped"
        )
        if summary.reason is not None:
            log("■", f"DONE {counts} ({_REASON_TEXT[summary.reason]})", Colors.YELLOW)
        elif summary.failed:
            log("✗", f"DONE {counts}", Colors.RED)
        else:
            log("✓", f"DONE {counts}", Colors.GREEN)

    def on_fatal_error(self, message: str, cleaned_up: bool) -> None:
        log("✗", f"{Colors.BOLD}Fatal:{Colors.RESET} {Colors.RED}{message}", Colors.RED)
        if cleaned_up:
            log("◦", "Worktree cleaned up", Colors.MUTED)
        else:
            log(
                "!",
                "Worktree could not be removed; run `revwalk clean` to remove it",
                Colors.YELLOW,
            )

    def on_cancel_observed(self) -> None:
        log("■", "Cancellation requested, stopping after cleanup", Colors.YELLOW)

    # -------------------------------------------------------------------------
    # Worktree lifecycle
    # -------------------------------------------------------------------------

    def on_worktree_provisioned(self, path: Path) -> None:
        log_verbose("◦", f"Worktree: {path}", dim=True)

    def on_worktree_removed(self, path: Path) -> None:
        log_verbose("◦", f"Removed worktree {path}", dim=True)

    def on_setup_step_started(self, name: str) -> None:
        log("◦", f"Setup: {name}", Colors.CYAN)

    def on_setup_step_completed(self, name: str, duration_seconds: float) -> None:
        log_verbose("✓", f"Setup: {name} ({duration_seconds:.1f}s)", Colors.GREEN)

    # -------------------------------------------------------------------------
    # Per-commit events
    # -------------------------------------------------------------------------

    def on_commit_started(self, commit: Commit, total: int) -> None:
        log_verbose(
            "→",
            f"[{commit.position}/{total}] {truncate_text(commit.subject, 60)}",
            label=commit.short_sha,
        )

    def on_output(self, line: str) -> None:
        if is_verbose_enabled():
            log_output_line(line)

    def on_commit_completed(self, event: CommitEvent) -> None:
        self._events.append(event)
        icon, color = _STATUS_STYLE[event.outcome.status]
        if event.outcome.is_skipped:
            detail = "skipped (no matching files)"
        else:
            detail = (
                f"{event.outcome.status.value} "
                f"({len(event.outcome.files)} file(s), {event.duration:.1f}s)"
            )
        log(
            icon,
            f"[{event.position}/{event.total}] {truncate_text(event.subject, 50)}: "
            f"{detail}",
            color,
            label=event.short_id or event.commit_id[:8],
        )
        if event.outcome.failed and not is_verbose_enabled():
            tail = event.outcome.output_tail()
            for line in tail.splitlines():
                log_output_line(line)


def format_results_table(events: list[CommitEvent]) -> str:
    """Render per-commit results as a plain-text table."""
    headers = ["#", "Commit", "Subject", "Status", "Exit", "Files", "Duration"]
    rows = []
    for event in events:
        outcome = event.outcome
        rows.append(
            [
                f"{event.position}/{event.total}",
                event.short_id or event.commit_id[:8],
                truncate_text(event.subject, 40),
                outcome.status.value,
                "-" if outcome.exit_code is None else outcome.exit_code,
                len(outcome.files),
                "-" if outcome.is_skipped else f"{event.duration:.1f}s",
            ]
        )
    return tabulate(rows, headers=headers, tablefmt="simple")
