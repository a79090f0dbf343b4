"""Factory function for RevisionWalkOrchestrator initialization.

Design principles:
- WalkOrchestratorConfig: All scalar configuration (range, config source, flags)
- WalkDependencies: All protocol implementations (DI for testability)
- create_orchestrator(): Factory function encapsulating initialization logic

Usage:
    # Simple usage with defaults
    config = WalkOrchestratorConfig(repo_path=Path("."))
    orchestrator = create_orchestrator(config)

    # With custom dependencies for testing
    deps = WalkDependencies(
        git_client=fake_git,
        command_runner=fake_runner,
        event_sink=FakeEventSink(),
    )
    orchestrator = create_orchestrator(config, deps=deps)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .types import WalkDependencies, WalkOrchestratorConfig

__all__ = [
    "WalkDependencies",
    "WalkOrchestratorConfig",
    "create_orchestrator",
]

if TYPE_CHECKING:
    from revwalk.domain.walk_config import WalkConfig
    from revwalk.infra.io.config import RevwalkConfig

    from .orchestrator import RevisionWalkOrchestrator


def _load_walk_config(config: WalkOrchestratorConfig) -> WalkConfig:
    from revwalk.domain.config_loader import (
        load_walk_config,
        load_walk_config_from_repo,
    )

    if config.walk_config is not None:
        return config.walk_config
    if config.config_path is not None:
        return load_walk_config(config.config_path)
    return load_walk_config_from_repo(config.repo_path)


def create_orchestrator(
    config: WalkOrchestratorConfig,
    *,
    revwalk_config: RevwalkConfig | None = None,
    deps: WalkDependencies | None = None,
) -> RevisionWalkOrchestrator:
    """Create a RevisionWalkOrchestrator with the given configuration.

    The walk configuration and the environment configuration are both
    validated here, so every config error surfaces before the orchestrator
    exists and before anything touches the repository.

    Args:
        config: WalkOrchestratorConfig with all scalar configuration.
        revwalk_config: Optional RevwalkConfig. If None, loads from environment.
        deps: Optional WalkDependencies for custom implementations.
            If None, creates default implementations.

    Returns:
        Configured RevisionWalkOrchestrator ready for run().

    Raises:
        ConfigError: If revwalk.yaml is missing or invalid.
        ConfigurationError: If the environment configuration is invalid.
    """
    from revwalk.infra.git_client import GitClient
    from revwalk.infra.io.base_sink import NullEventSink
    from revwalk.infra.io.config import ConfigurationError, RevwalkConfig
    from revwalk.infra.sigint_guard import CancellationController
    from revwalk.infra.test_invoker import TestInvoker
    from revwalk.infra.tools.command_runner import CommandRunner
    from revwalk.infra.worktree import WorktreeManager

    from .orchestrator import RevisionWalkOrchestrator

    deps = deps or WalkDependencies()

    if revwalk_config is None:
        revwalk_config = RevwalkConfig.from_env(validate=False)
    errors = revwalk_config.validate(config.repo_path)
    if errors:
        raise ConfigurationError(errors)

    walk_config = _load_walk_config(config)

    git = deps.git_client or GitClient(
        config.repo_path,
        timeout_seconds=revwalk_config.git_timeout_seconds,
        remove_retries=revwalk_config.remove_retries,
    )
    runner = deps.command_runner or CommandRunner()

    manage_signals = deps.cancellation is None
    cancellation = deps.cancellation or CancellationController()

    return RevisionWalkOrchestrator(
        config=config,
        walk_config=walk_config,
        git=git,
        worktrees=WorktreeManager(git, runner, revwalk_config.worktree_dir),
        invoker=TestInvoker(runner),
        event_sink=deps.event_sink or NullEventSink(),
        cancellation=cancellation,
        manage_signals=manage_signals,
    )
