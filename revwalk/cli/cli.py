#!/usr/bin/env python3
"""
revwalk CLI: replay a branch commit by commit against its test suite.

Usage:
    revwalk run [OPTIONS] [REPO_PATH]
    revwalk range [OPTIONS] [REPO_PATH]
    revwalk clean [REPO_PATH]

Exit codes:
    0   every processed commit passed or was skipped
    1   a commit failed, or the run aborted with an error
    130 the run was cancelled with Ctrl-C / SIGTERM
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from tabulate import tabulate

from revwalk.core.errors import GitCommandError, RevwalkError
from revwalk.core.models import TerminationReason
from revwalk.infra.git_client import GitClient
from revwalk.infra.io.config import ConfigurationError, RevwalkConfig
from revwalk.infra.io.console_sink import ConsoleEventSink
from revwalk.infra.io.log_output.console import (
    Colors,
    log,
    set_verbose,
    truncate_text,
)
from revwalk.infra.io.log_output.debug_log import (
    cleanup_debug_logging,
    configure_debug_logging,
)
from revwalk.infra.sigint_guard import CancellationController
from revwalk.infra.tools.command_runner import CommandRunner
from revwalk.infra.tools.env import load_user_env
from revwalk.infra.worktree import WorktreeManager, WorktreeState
from revwalk.orchestration.factory import (
    WalkDependencies,
    WalkOrchestratorConfig,
    create_orchestrator,
)

if TYPE_CHECKING:
    from revwalk.core.models import WalkSummary
    from revwalk.orchestration.orchestrator import RevisionWalkOrchestrator

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130

# Bootstrap state: tracks whether bootstrap() has been called
_bootstrapped = False


def bootstrap() -> None:
    """Initialize environment.

    Idempotent. Loads REVWALK_* settings from ~/.config/revwalk/.env before any
    command reads them.
    """
    global _bootstrapped

    if _bootstrapped:
        return

    load_user_env()
    _bootstrapped = True


def exit_code_for(summary: WalkSummary) -> int:
    """Map a walk summary to the process exit status."""
    if summary.reason is TerminationReason.CANCELLED:
        return EXIT_CANCELLED
    if summary.failed or summary.reason is TerminationReason.ERROR:
        return EXIT_FAILED
    return EXIT_OK


def _load_config() -> RevwalkConfig:
    try:
        return RevwalkConfig.from_env()
    except ConfigurationError as e:
        log("✗", str(e), Colors.RED)
        raise typer.Exit(EXIT_FAILED) from None


def _open_repository(repo_path: Path, config: RevwalkConfig) -> GitClient:
    try:
        return GitClient.discover(
            repo_path.resolve(),
            timeout_seconds=config.git_timeout_seconds,
            remove_retries=config.remove_retries,
        )
    except GitCommandError as e:
        log("✗", f"Not a git repository: {repo_path} ({e})", Colors.RED)
        raise typer.Exit(EXIT_FAILED) from None


def _report_worktree(orchestrator: RevisionWalkOrchestrator) -> None:
    """Tell the user what became of the worktree after an unreported abort."""
    session = orchestrator.worktrees.session
    if session is None:
        log("◦", "No worktree was created", Colors.MUTED)
    elif session.state is WorktreeState.TORN_DOWN:
        log("◦", "Worktree cleaned up", Colors.MUTED)
    else:
        log(
            "!",
            f"Worktree {session.path} could not be removed; run `revwalk clean`",
            Colors.YELLOW,
        )


app = typer.Typer(
    name="revwalk",
    help="Validate every commit of a branch in an isolated git worktree",
    add_completion=False,
)


@app.command()
def run(
    repo_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the repository to walk",
        ),
    ] = Path("."),
    base: Annotated[
        str | None,
        typer.Option(
            "--base",
            "-b",
            help="Commit the walk starts after (default: tip of the default branch)",
        ),
    ] = None,
    tip: Annotated[
        str,
        typer.Option(
            "--tip",
            "-t",
            help="Last commit to validate",
        ),
    ] = "HEAD",
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to revwalk.yaml (default: <repo>/revwalk.yaml)",
        ),
    ] = None,
    stop_on_failure: Annotated[
        bool,
        typer.Option(
            "--stop-on-failure",
            help="Stop at the first failing commit",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Stream test and setup output live",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Write diagnostic logs to stderr (or $REVWALK_DEBUG_LOG)",
        ),
    ] = False,
) -> None:
    """Run the test command against every commit from base to tip."""
    set_verbose(verbose)
    revwalk_config = _load_config()
    if debug:
        configure_debug_logging(revwalk_config.debug_log_path)

    try:
        git = _open_repository(repo_path, revwalk_config)
        config = WalkOrchestratorConfig(
            repo_path=git.repo_path,
            base=base,
            tip=tip,
            config_path=config_path,
            stop_on_failure=True if stop_on_failure else None,
        )

        with CancellationController() as cancellation:
            try:
                orchestrator = create_orchestrator(
                    config,
                    revwalk_config=revwalk_config,
                    deps=WalkDependencies(
                        git_client=git,
                        event_sink=ConsoleEventSink(),
                        cancellation=cancellation,
                    ),
                )
            except RevwalkError as e:
                log("✗", str(e), Colors.RED)
                raise typer.Exit(EXIT_FAILED) from None

            try:
                summary = orchestrator.run()
            except KeyboardInterrupt:
                log("✗", "Interrupted", Colors.RED)
                _report_worktree(orchestrator)
                raise typer.Exit(EXIT_CANCELLED) from None
            except (RevwalkError, OSError) as e:
                # Errors after the walk started were already reported by the sink
                if orchestrator.last_summary is None:
                    log("✗", str(e), Colors.RED)
                    _report_worktree(orchestrator)
                raise typer.Exit(EXIT_FAILED) from None
    finally:
        if debug:
            cleanup_debug_logging()

    raise typer.Exit(exit_code_for(summary))


@app.command(name="range")
def show_range(
    repo_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the repository to walk",
        ),
    ] = Path("."),
    base: Annotated[
        str | None,
        typer.Option(
            "--base",
            "-b",
            help="Commit the walk starts after (default: tip of the default branch)",
        ),
    ] = None,
    tip: Annotated[
        str,
        typer.Option(
            "--tip",
            "-t",
            help="Last commit to validate",
        ),
    ] = "HEAD",
) -> None:
    """Print the commits a run would validate, without running anything."""
    revwalk_config = _load_config()
    git = _open_repository(repo_path, revwalk_config)
    try:
        walk = git.resolve_commit_range(base or git.default_branch(), tip)
    except RevwalkError as e:
        log("✗", str(e), Colors.RED)
        raise typer.Exit(EXIT_FAILED) from None

    if not walk.total:
        log("◦", f"No commits after {walk.base[:12]}", Colors.MUTED)
        raise typer.Exit(EXIT_OK)

    rows = [
        [f"{c.position}/{walk.total}", c.short_sha, truncate_text(c.subject, 72)]
        for c in walk
    ]
    print(tabulate(rows, headers=["#", "Commit", "Subject"], tablefmt="simple"))


@app.command()
def clean(
    repo_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the repository whose stale worktrees should be removed",
        ),
    ] = Path("."),
) -> None:
    """Remove worktrees left behind by killed runs."""
    revwalk_config = _load_config()
    git = _open_repository(repo_path, revwalk_config)
    manager = WorktreeManager(git, CommandRunner(), revwalk_config.worktree_dir)
    try:
        cleaned = manager.cleanup_stale_worktrees()
    except RevwalkError as e:
        log("✗", str(e), Colors.RED)
        raise typer.Exit(EXIT_FAILED) from None

    if cleaned:
        log("✓", f"Removed {cleaned} stale worktree(s)", Colors.GREEN)
    else:
        log("◦", "No stale worktrees", Colors.MUTED)

