"""Tests for RevisionWalkOrchestrator.

The orchestrator is wired through create_orchestrator() with fakes for git,
subprocesses, events, and cancellation so every exit path can be driven
deterministically. Worktree directories are real, so tests can assert that
nothing is left on disk.
"""

from __future__ import annotations

import signal
from typing import TYPE_CHECKING

import pytest

from revwalk.core.errors import (
    CheckoutFailed,
    GitCommandError,
    InvalidRange,
    SetupStepFailed,
    TestInvocationFailed,
    WorktreeCreationFailed,
    WorktreeRemovalFailed,
)
from revwalk.core.models import OutcomeStatus, TerminationReason
from revwalk.domain.walk_config import (
    ConfigMissingError,
    SetupStep,
    TestCommand,
    WalkConfig,
)
from revwalk.infra.io.config import ConfigurationError, RevwalkConfig
from revwalk.infra.sigint_guard import CancellationController
from revwalk.orchestration import (
    WalkDependencies,
    WalkOrchestratorConfig,
    create_orchestrator,
)
from tests.fakes import (
    FakeCancellation,
    FakeCommandRunner,
    FakeCommit,
    FakeEventSink,
    FakeGitClient,
)
from tests.fakes.git_client import BASE_SHA

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from revwalk.orchestration import RevisionWalkOrchestrator

PYTEST = TestCommand(command="pytest", args=("-q",))


class Harness:
    """Fakes plus an orchestrator wired to them."""

    def __init__(
        self,
        tmp_path: Path,
        changes: Sequence[Sequence[str]] = (["a.py"], ["b.py"], ["c.py"]),
        *,
        walk_config: WalkConfig | None = None,
        cancellation: FakeCancellation | None = None,
        **config_kwargs: object,
    ) -> None:
        repo = tmp_path / "repo"
        repo.mkdir(exist_ok=True)
        self.worktree_dir = tmp_path / "worktrees"
        self.git = FakeGitClient.linear(repo, changes)
        self.runner = FakeCommandRunner()
        self.sink = FakeEventSink()
        self.cancellation = cancellation or FakeCancellation()
        self.walk_config = walk_config or WalkConfig(test=PYTEST)
        self.config_kwargs = config_kwargs

    def build(self) -> RevisionWalkOrchestrator:
        config = WalkOrchestratorConfig(
            repo_path=self.git.repo_path,
            walk_config=self.walk_config,
            **self.config_kwargs,  # type: ignore[arg-type]
        )
        return create_orchestrator(
            config,
            revwalk_config=RevwalkConfig(worktree_dir=self.worktree_dir),
            deps=WalkDependencies(
                git_client=self.git,
                command_runner=self.runner,
                event_sink=self.sink,
                cancellation=self.cancellation,
            ),
        )

    def pass_all(self, stdout: str = "") -> None:
        self.runner.register(["pytest"], stdout=stdout, match_executable=True)

    def worktree_path(self) -> Path:
        return self.sink.get_events("worktree_provisioned")[0].kwargs["path"]

    def leftover_worktrees(self) -> list[Path]:
        if not self.worktree_dir.exists():
            return []
        return list(self.worktree_dir.iterdir())


class TestHappyPath:
    def test_every_commit_validated_in_order(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.pass_all()

        summary = h.build().run()

        assert summary.total == 3
        assert summary.processed == 3
        assert summary.passed == 3
        assert summary.ok
        assert summary.reason is None
        assert h.git.checked_out() == [c.sha for c in h.git.commits]
        assert h.runner.commands() == [
            ["pytest", "-q", "a.py"],
            ["pytest", "-q", "b.py"],
            ["pytest", "-q", "c.py"],
        ]
        assert h.leftover_worktrees() == []

    def test_event_order(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.pass_all()

        h.build().run()

        assert h.sink.names() == [
            "walk_started",
            "worktree_provisioned",
            "commit_started",
            "commit_completed",
            "commit_started",
            "commit_completed",
            "commit_started",
            "commit_completed",
            "worktree_removed",
            "walk_completed",
        ]
        started = h.sink.get_events("walk_started")[0].kwargs["event"]
        assert started.total_commits == 3
        assert started.base_commit == BASE_SHA
        assert started.tip_commit == h.git.commits[-1].sha

    def test_commit_events_carry_position_and_files(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, [["b.py", "a.py"], ["c.py"]])
        h.pass_all()

        h.build().run()

        events = h.sink.commit_events()
        assert [(e.position, e.total) for e in events] == [(1, 2), (2, 2)]
        assert events[0].changed_files == ("a.py", "b.py")
        assert events[0].outcome.status is OutcomeStatus.PASSED

    def test_summary_matches_completed_event(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.pass_all()
        orchestrator = h.build()

        summary = orchestrator.run()

        assert h.sink.summary() == summary
        assert orchestrator.last_summary == summary

    def test_setup_runs_once_in_worktree(self, tmp_path: Path) -> None:
        h = Harness(
            tmp_path,
            walk_config=WalkConfig(
                test=PYTEST,
                setup=(SetupStep(name="deps", command="make", args=("deps",)),),
            ),
        )
        h.pass_all()
        h.runner.register(["make", "deps"], stdout="installed")

        h.build().run()

        assert h.runner.commands()[0] == ["make", "deps"]
        assert h.runner.calls[0].cwd == h.worktree_path()
        assert h.sink.names()[2:5] == [
            "setup_step_started",
            "output",
            "setup_step_completed",
        ]

    def test_test_output_is_streamed(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, [["a.py"]])
        h.pass_all(stdout="collected 1 item\n1 passed\n")

        h.build().run()

        lines = [e.kwargs["line"] for e in h.sink.get_events("output")]
        assert lines == ["collected 1 item", "1 passed"]

    def test_diff_is_against_previous_commit(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, [["a.py"], ["b.py"]])
        h.pass_all()

        h.build().run()

        diffs = [args for name, args in h.git.calls if name == "diff_files"]
        first, second = h.git.commits
        assert diffs == [(BASE_SHA, first.sha, False), (first.sha, second.sha, False)]

    def test_explicit_base_and_tip(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, [["a.py"], ["b.py"], ["c.py"]])
        h.pass_all()
        h.config_kwargs = {"base": h.git.commits[0].sha, "tip": h.git.commits[1].sha}

        summary = h.build().run()

        assert summary.total == 1
        assert h.runner.commands() == [["pytest", "-q", "b.py"]]


class TestSkippedCommits:
    def test_no_matching_files_skips_without_running(self, tmp_path: Path) -> None:
        h = Harness(
            tmp_path,
            [["src/a.py"], ["README.md"], ["src/b.py", "docs/x.md"]],
            walk_config=WalkConfig(test=PYTEST, patterns=("src/**/*.py",)),
        )
        h.pass_all()

        summary = h.build().run()

        assert summary.processed == 3
        assert summary.skipped == 1
        assert summary.passed == 2
        assert summary.ok
        assert h.runner.commands() == [
            ["pytest", "-q", "src/a.py"],
            ["pytest", "-q", "src/b.py"],
        ]
        skipped = h.sink.commit_events()[1]
        assert skipped.outcome.status is OutcomeStatus.SKIPPED
        assert skipped.changed_files == ()

    def test_deleted_files_are_not_passed_to_tests(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.git.commits = [
            FakeCommit(sha="1" * 40, changed=("a.py", "old.py")),
            FakeCommit(sha="2" * 40, changed=("a.py",), deleted=("old.py",)),
        ]
        h.pass_all()

        h.build().run()

        assert h.runner.commands() == [
            ["pytest", "-q", "a.py", "old.py"],
            ["pytest", "-q", "a.py"],
        ]

    def test_commit_with_only_deletions_is_skipped(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.git.commits = [FakeCommit(sha="1" * 40, deleted=("gone.py",))]

        summary = h.build().run()

        assert summary.skipped == 1
        assert h.runner.calls == []


class TestFailures:
    def _register(self, h: Harness, failing: str) -> None:
        for name in ("a.py", "b.py", "c.py"):
            h.runner.register(
                ["pytest", "-q", name],
                returncode=1 if name == failing else 0,
                stdout=f"{name} result",
            )

    def test_failure_is_recorded_and_walk_continues(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        self._register(h, failing="b.py")

        summary = h.build().run()

        assert summary.processed == 3
        assert (summary.passed, summary.failed) == (2, 1)
        assert summary.completed
        assert not summary.ok
        failed = h.sink.commit_events()[1].outcome
        assert failed.exit_code == 1
        assert failed.output == "b.py result"

    def test_stop_on_failure_from_walk_config(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, walk_config=WalkConfig(test=PYTEST, stop_on_failure=True))
        self._register(h, failing="b.py")

        summary = h.build().run()

        assert summary.processed == 2
        assert summary.terminated_early
        assert summary.reason is TerminationReason.STOP_ON_FAILURE
        assert h.leftover_worktrees() == []

    def test_stop_on_failure_override(self, tmp_path: Path) -> None:
        h = Harness(
            tmp_path,
            walk_config=WalkConfig(test=PYTEST, stop_on_failure=True),
            stop_on_failure=False,
        )
        self._register(h, failing="b.py")

        summary = h.build().run()

        assert summary.processed == 3

    def test_stop_on_failure_at_last_commit_completes(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, stop_on_failure=True)
        self._register(h, failing="c.py")

        summary = h.build().run()

        assert summary.processed == 3
        assert summary.reason is None
        assert summary.completed


class TestAborts:
    def test_setup_failure_aborts_before_any_commit(self, tmp_path: Path) -> None:
        h = Harness(
            tmp_path,
            walk_config=WalkConfig(
                test=PYTEST,
                setup=(SetupStep(name="deps", command="make", args=("deps",)),),
            ),
        )
        h.runner.register(["make", "deps"], returncode=2, stdout="make: *** no rule")
        orchestrator = h.build()

        with pytest.raises(SetupStepFailed):
            orchestrator.run()

        summary = orchestrator.last_summary
        assert summary is not None
        assert summary.processed == 0
        assert summary.reason is TerminationReason.ERROR
        assert summary.error is not None and "deps" in summary.error
        fatal = h.sink.get_events("fatal_error")[0].kwargs
        assert "deps" in fatal["message"]
        assert fatal["cleaned_up"] is True
        assert not h.worktree_path().exists()
        assert not h.sink.has_event("commit_started")
        assert h.sink.names()[-1] == "walk_completed"

    def test_checkout_failure_aborts_with_teardown(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.pass_all()
        h.git.fail_checkout = {h.git.commits[1].sha}
        orchestrator = h.build()

        with pytest.raises(CheckoutFailed):
            orchestrator.run()

        assert orchestrator.last_summary is not None
        assert orchestrator.last_summary.processed == 1
        assert h.sink.has_event("worktree_removed")
        assert h.leftover_worktrees() == []

    def test_unstartable_test_command_aborts(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.runner.register(
            ["pytest"], raises=FileNotFoundError("pytest"), match_executable=True
        )
        orchestrator = h.build()

        with pytest.raises(TestInvocationFailed):
            orchestrator.run()

        assert orchestrator.last_summary is not None
        assert orchestrator.last_summary.processed == 0
        assert h.leftover_worktrees() == []

    def test_worktree_creation_failure(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.git.fail_create = True
        orchestrator = h.build()

        with pytest.raises(WorktreeCreationFailed, match="simulated failure"):
            orchestrator.run()

        assert orchestrator.last_summary is not None
        assert orchestrator.last_summary.reason is TerminationReason.ERROR
        assert h.runner.calls == []

    def test_removal_failure_reported(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.pass_all()
        h.git.fail_remove = 1
        orchestrator = h.build()

        with pytest.raises(WorktreeRemovalFailed):
            orchestrator.run()

        summary = orchestrator.last_summary
        assert summary is not None
        assert summary.processed == 3
        assert summary.reason is TerminationReason.ERROR
        fatal = h.sink.get_events("fatal_error")[0].kwargs
        assert fatal["cleaned_up"] is False
        assert not h.sink.has_event("worktree_removed")

    def test_git_error_during_removal_still_reports(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        h.pass_all()
        h.git.remove_error = GitCommandError(
            "git worktree timed out after 60.0s", returncode=124
        )
        orchestrator = h.build()

        with pytest.raises(WorktreeRemovalFailed):
            orchestrator.run()

        assert h.sink.names()[-2:] == ["fatal_error", "walk_completed"]
        fatal = h.sink.get_events("fatal_error")[0].kwargs
        assert fatal["cleaned_up"] is False
        summary = orchestrator.last_summary
        assert summary is not None
        assert summary.processed == 3
        assert summary.reason is TerminationReason.ERROR

    def test_removal_failure_does_not_mask_earlier_error(
        self, tmp_path: Path
    ) -> None:
        h = Harness(tmp_path)
        h.pass_all()
        h.git.fail_checkout = {h.git.commits[0].sha}
        h.git.remove_error = GitCommandError("git worktree exited 128")
        orchestrator = h.build()

        with pytest.raises(CheckoutFailed):
            orchestrator.run()

        fatal = h.sink.get_events("fatal_error")[0].kwargs
        assert fatal["cleaned_up"] is False
        assert h.sink.names()[-1] == "walk_completed"

    def test_interrupt_during_test_run_still_tears_down(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)

        def _interrupt(cmd: list[str]) -> None:
            raise KeyboardInterrupt

        h.runner.register(["pytest"], side_effect=_interrupt, match_executable=True)
        orchestrator = h.build()

        with pytest.raises(KeyboardInterrupt):
            orchestrator.run()

        assert h.sink.has_event("worktree_removed")
        assert h.leftover_worktrees() == []

    def test_invalid_range_has_no_side_effects(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, base="not-a-commit")
        orchestrator = h.build()

        with pytest.raises(InvalidRange):
            orchestrator.run()

        assert "create_worktree" not in h.git.call_names()
        assert h.sink.events == []
        assert orchestrator.last_summary is None

    def test_empty_range_creates_nothing(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, [])

        summary = h.build().run()

        assert summary.total == 0
        assert summary.ok
        assert "create_worktree" not in h.git.call_names()
        assert h.sink.names() == ["walk_started", "walk_completed"]


class TestCancellation:
    def test_cancel_after_second_commit(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, [["a.py"], ["b.py"], ["c.py"], ["d.py"], ["e.py"]])
        seen: list[list[str]] = []

        def _cancel_on_second(cmd: list[str]) -> None:
            seen.append(cmd)
            if len(seen) == 2:
                h.cancellation.cancel()

        h.runner.register(["pytest"], side_effect=_cancel_on_second, match_executable=True)

        summary = h.build().run()

        assert summary.total == 5
        assert summary.processed == 2
        assert summary.passed == 2
        assert summary.terminated_early
        assert summary.reason is TerminationReason.CANCELLED
        assert h.sink.get_events("cancel_observed") != []
        assert h.leftover_worktrees() == []
        # The run in progress when cancellation arrived completed
        assert h.sink.commit_events()[-1].position == 2

    def test_cancel_before_start_creates_nothing(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, cancellation=FakeCancellation(trip_after_checks=1))

        summary = h.build().run()

        assert summary.processed == 0
        assert summary.reason is TerminationReason.CANCELLED
        assert "create_worktree" not in h.git.call_names()
        assert h.sink.names() == ["walk_started", "cancel_observed", "walk_completed"]

    def test_no_test_starts_after_cancellation_observed(self, tmp_path: Path) -> None:
        # Checks: before provisioning, before commit 1, after commit 1's diff
        h = Harness(tmp_path, cancellation=FakeCancellation(trip_after_checks=3))
        h.pass_all()

        summary = h.build().run()

        assert summary.processed == 0
        assert h.runner.calls == []
        assert h.git.checked_out() == [h.git.commits[0].sha]
        assert h.leftover_worktrees() == []

    def test_cancel_reported_once(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, cancellation=FakeCancellation(trip_after_checks=2))

        h.build().run()

        assert len(h.sink.get_events("cancel_observed")) == 1


class TestFactory:
    def test_missing_walk_config_file(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        repo.mkdir()
        with pytest.raises(ConfigMissingError):
            create_orchestrator(
                WalkOrchestratorConfig(repo_path=repo),
                revwalk_config=RevwalkConfig(worktree_dir=tmp_path / "w"),
            )

    def test_loads_explicit_config_path(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        repo.mkdir()
        config_file = tmp_path / "walk.yaml"
        config_file.write_text("test: make check\nstop_on_failure: true\n")

        orchestrator = create_orchestrator(
            WalkOrchestratorConfig(repo_path=repo, config_path=config_file),
            revwalk_config=RevwalkConfig(worktree_dir=tmp_path / "w"),
        )

        assert orchestrator.walk_config.test == TestCommand("make", ("check",))
        assert orchestrator.stop_on_failure is True

    def test_worktree_dir_inside_repository_rejected(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        repo.mkdir()
        with pytest.raises(ConfigurationError, match="must not be inside"):
            create_orchestrator(
                WalkOrchestratorConfig(
                    repo_path=repo, walk_config=WalkConfig(test=PYTEST)
                ),
                revwalk_config=RevwalkConfig(worktree_dir=repo / "walks"),
            )

    def test_default_cancellation_installs_handlers_during_run(
        self, tmp_path: Path
    ) -> None:
        repo = tmp_path / "repo"
        repo.mkdir()
        git = FakeGitClient.linear(repo, [["a.py"]])
        runner = FakeCommandRunner()
        handlers: list[object] = []
        runner.register(
            ["pytest"],
            side_effect=lambda cmd: handlers.append(signal.getsignal(signal.SIGINT)),
            match_executable=True,
        )
        before = signal.getsignal(signal.SIGINT)

        orchestrator = create_orchestrator(
            WalkOrchestratorConfig(repo_path=repo, walk_config=WalkConfig(test=PYTEST)),
            revwalk_config=RevwalkConfig(worktree_dir=tmp_path / "w"),
            deps=WalkDependencies(git_client=git, command_runner=runner),
        )
        orchestrator.run()

        assert isinstance(orchestrator.cancellation, CancellationController)
        assert handlers[0] != before
        assert signal.getsignal(signal.SIGINT) == before
