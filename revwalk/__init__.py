"""revwalk: replay a branch commit by commit against its test suite."""

from .orchestration.orchestrator import RevisionWalkOrchestrator

__version__ = "0.1.0"
__all__ = ["RevisionWalkOrchestrator", "__version__"]
