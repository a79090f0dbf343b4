"""Data model for a revision walk.

All types here are frozen dataclasses: commits are read from git once,
outcomes are appended to the result log once, and nothing is mutated
afterwards.

Key types:
- Commit: a single commit in replay order
- RevisionWalk: ordered commits from base (exclusive) to tip (inclusive)
- ChangedFileSet: repository-relative paths differing between two commits
- TestOutcome: per-commit result of the test command
- WalkSummary: end-of-run aggregate
- WalkStarted, CommitEvent: payloads for the event stream
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from revwalk.core.errors import InvalidRange

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


def tail_text(text: str, max_chars: int = 800, max_lines: int = 20) -> str:
    """Return the last max_lines lines of text, capped at max_chars characters."""
    if not text:
        return ""
    lines = text.splitlines()
    tail = "\n".join(lines[-max_lines:])
    if len(tail) > max_chars:
        tail = tail[-max_chars:]
    return tail


@dataclass(frozen=True)
class Commit:
    """A commit read from git.

    Attributes:
        sha: Full commit hash.
        short_sha: Abbreviated hash for display.
        subject: First line of the commit message.
        position: 1-indexed position within the current walk.
        parent: First parent hash, or None for a root commit.
    """

    sha: str
    short_sha: str
    subject: str
    position: int
    parent: str | None = None


@dataclass(frozen=True)
class RevisionWalk:
    """Ordered commits from base (exclusive) to tip (inclusive), oldest first.

    Order is replay order. Construction rejects a sequence whose positions are
    not 1..N or whose parent chain is broken.
    """

    base: str
    tip: str
    commits: tuple[Commit, ...] = ()

    def __post_init__(self) -> None:
        if not self.commits and self.base != self.tip:
            raise InvalidRange(
                f"No commits between {self.base[:12]} and {self.tip[:12]}",
                base=self.base,
            )
        previous: Commit | None = None
        for index, commit in enumerate(self.commits, start=1):
            if commit.position != index:
                raise InvalidRange(
                    f"Commit {commit.short_sha} has position {commit.position}, "
                    f"expected {index}",
                    base=self.base,
                )
            if previous is not None and commit.parent != previous.sha:
                raise InvalidRange(
                    f"Commit {commit.short_sha} does not follow {previous.short_sha}",
                    base=self.base,
                )
            previous = commit

    @property
    def total(self) -> int:
        return len(self.commits)

    def __len__(self) -> int:
        return len(self.commits)

    def __iter__(self) -> Iterator[Commit]:
        return iter(self.commits)


@dataclass(frozen=True)
class ChangedFileSet:
    """Paths that differ between two commits, sorted and de-duplicated."""

    paths: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(sorted(set(self.paths))))

    @classmethod
    def of(cls, paths: Iterable[str]) -> ChangedFileSet:
        return cls(paths=tuple(paths))

    def __len__(self) -> int:
        return len(self.paths)

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __contains__(self, path: object) -> bool:
        return path in self.paths


class OutcomeStatus(Enum):
    """Per-commit result of running the test command."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"  # No changed file matched the pattern


@dataclass(frozen=True)
class TestOutcome:
    """Result of validating one commit.

    Attributes:
        commit_sha: The commit this outcome belongs to.
        status: passed, failed, or skipped.
        exit_code: Test command exit status; None when skipped.
        duration_seconds: Wall-clock time of the test run.
        output: Captured combined stdout/stderr of the test run.
        files: Files passed to the test command.
        command: Full argv that was executed (empty when skipped).
    """

    __test__ = False

    commit_sha: str
    status: OutcomeStatus
    exit_code: int | None = None
    duration_seconds: float = 0.0
    output: str = ""
    files: tuple[str, ...] = ()
    command: tuple[str, ...] = ()

    @classmethod
    def skipped(cls, commit_sha: str) -> TestOutcome:
        """Synthetic outcome for a commit with no matching changed files."""
        return cls(commit_sha=commit_sha, status=OutcomeStatus.SKIPPED)

    @property
    def passed(self) -> bool:
        return self.status is OutcomeStatus.PASSED

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @property
    def is_skipped(self) -> bool:
        return self.status is OutcomeStatus.SKIPPED

    def output_tail(self, max_chars: int = 800, max_lines: int = 20) -> str:
        return tail_text(self.output, max_chars=max_chars, max_lines=max_lines)


class TerminationReason(Enum):
    """Why a walk stopped before processing every commit."""

    CANCELLED = "cancelled"
    STOP_ON_FAILURE = "stop_on_failure"
    ERROR = "error"


@dataclass(frozen=True)
class WalkSummary:
    """End-of-run aggregate.

    Attributes:
        total: Number of commits in the walk.
        processed: Commits whose outcome was recorded (skipped ones included).
        passed: Commits whose test run exited 0.
        failed: Commits whose test run exited non-zero.
        skipped: Commits with no changed file matching the pattern.
        terminated_early: True when the walk stopped before the last commit
            or aborted with an error.
        reason: Why the walk stopped early, None when it completed.
        error: Single-line cause when reason is ERROR.
        outcomes: The ordered result log.
    """

    total: int
    processed: int
    passed: int
    failed: int
    skipped: int
    terminated_early: bool
    reason: TerminationReason | None = None
    error: str | None = None
    outcomes: tuple[TestOutcome, ...] = field(default=(), repr=False)

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Iterable[TestOutcome],
        *,
        total: int,
        reason: TerminationReason | None = None,
        error: str | None = None,
    ) -> WalkSummary:
        log = tuple(outcomes)
        return cls(
            total=total,
            processed=len(log),
            passed=sum(1 for o in log if o.passed),
            failed=sum(1 for o in log if o.failed),
            skipped=sum(1 for o in log if o.is_skipped),
            terminated_early=reason is not None,
            reason=reason,
            error=error,
            outcomes=log,
        )

    @property
    def completed(self) -> bool:
        """True when every commit in the walk was processed."""
        return not self.terminated_early and self.processed == self.total

    @property
    def ok(self) -> bool:
        """True when the walk completed and no commit failed."""
        return self.completed and self.failed == 0


@dataclass(frozen=True)
class WalkStarted:
    """Start-of-run event payload."""

    total_commits: int
    base_commit: str
    tip_commit: str


@dataclass(frozen=True)
class CommitEvent:
    """Per-commit event payload, emitted as soon as the commit is processed."""

    commit_id: str
    position: int
    total: int
    changed_files: tuple[str, ...]
    outcome: TestOutcome
    duration: float
    short_id: str = ""
    subject: str = ""

    @classmethod
    def for_commit(
        cls,
        commit: Commit,
        total: int,
        changed: ChangedFileSet,
        outcome: TestOutcome,
    ) -> CommitEvent:
        return cls(
            commit_id=commit.sha,
            position=commit.position,
            total=total,
            changed_files=changed.paths,
            outcome=outcome,
            duration=outcome.duration_seconds,
            short_id=commit.short_sha,
            subject=commit.subject,
        )
