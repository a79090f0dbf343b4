"""Orchestration layer: wires the components into a revision walk."""

from revwalk.orchestration.factory import (
    WalkDependencies,
    WalkOrchestratorConfig,
    create_orchestrator,
)
from revwalk.orchestration.orchestrator import RevisionWalkOrchestrator

__all__ = [
    "RevisionWalkOrchestrator",
    "WalkDependencies",
    "WalkOrchestratorConfig",
    "create_orchestrator",
]
