"""Shared types for the walk orchestrator.

This module contains dataclasses shared between orchestrator.py and
factory.py to break circular imports.

Design principles:
- WalkOrchestratorConfig: All scalar configuration (range, config source, flags)
- WalkDependencies: All protocol implementations (DI for testability)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path  # noqa: TC003 - needed at runtime for dataclass field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from revwalk.core.protocols import (
        CancellationPort,
        CommandRunnerPort,
        GitClientPort,
        WalkEventSink,
    )
    from revwalk.domain.walk_config import WalkConfig


@dataclass
class WalkOrchestratorConfig:
    """Configuration for RevisionWalkOrchestrator.

    Attributes:
        repo_path: Root of the repository to walk.
        base: Commit the walk starts after. None means the tip of the
            repository's default branch.
        tip: Last commit of the walk.
        walk_config: Parsed revwalk.yaml. None loads it from config_path.
        config_path: Explicit revwalk.yaml location. None means
            <repo_path>/revwalk.yaml.
        stop_on_failure: Overrides the value from revwalk.yaml when not None.
    """

    repo_path: Path
    base: str | None = None
    tip: str = "HEAD"
    walk_config: WalkConfig | None = None
    config_path: Path | None = None
    stop_on_failure: bool | None = None


@dataclass
class WalkDependencies:
    """Protocol implementations for RevisionWalkOrchestrator.

    When None, the factory creates default implementations.

    Attributes:
        git_client: GitClientPort for the repository.
        command_runner: CommandRunnerPort for setup steps and test runs.
        event_sink: WalkEventSink receiving the event stream.
        cancellation: CancellationPort polled between units of work. When
            None, the orchestrator installs its own signal handlers for the
            duration of run().
    """

    git_client: GitClientPort | None = None
    command_runner: CommandRunnerPort | None = None
    event_sink: WalkEventSink | None = None
    cancellation: CancellationPort | None = None
