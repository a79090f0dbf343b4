"""Environment-level configuration for revwalk.

RevwalkConfig holds the settings that are not part of a repository's
revwalk.yaml: where worktrees are created and how patient git operations
are. Programmatic users construct it directly; the CLI loads it with
from_env().

Environment Variables:
    REVWALK_WORKTREE_DIR: Parent directory for worktrees
        (default: <system temp dir>/revwalk-worktrees)
    REVWALK_GIT_TIMEOUT: Timeout in seconds for each git invocation (default: 60)
    REVWALK_REMOVE_RETRIES: Attempts to delete a worktree directory (default: 3)
    REVWALK_DEBUG_LOG: File receiving diagnostic logs when --debug is given
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from revwalk.core.errors import RevwalkError
from revwalk.infra.tools.env import get_worktree_dir

DEFAULT_GIT_TIMEOUT_SECONDS = 60.0
DEFAULT_REMOVE_RETRIES = 3


class ConfigurationError(RevwalkError):
    """Raised when environment configuration validation fails."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        message = "Configuration validation failed:\n" + "\n".join(
            f"  - {e}" for e in errors
        )
        super().__init__(message)


@dataclass(frozen=True)
class RevwalkConfig:
    """Settings shared by every run, independent of the repository.

    Attributes:
        worktree_dir: Parent directory for worktrees. Must be absolute and
            must not be inside the repository being walked.
            Env: REVWALK_WORKTREE_DIR
        git_timeout_seconds: Timeout for each git invocation.
            Env: REVWALK_GIT_TIMEOUT
        remove_retries: Attempts to delete a stubborn worktree directory.
            Env: REVWALK_REMOVE_RETRIES
        debug_log_path: Optional file for diagnostic logs.
            Env: REVWALK_DEBUG_LOG

    Example:
        config = RevwalkConfig(worktree_dir=Path("/var/tmp/walks"))
        config = RevwalkConfig.from_env()
    """

    worktree_dir: Path = field(default_factory=get_worktree_dir)
    git_timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS
    remove_retries: int = DEFAULT_REMOVE_RETRIES
    debug_log_path: Path | None = None

    @classmethod
    def from_env(cls, *, validate: bool = True) -> RevwalkConfig:
        """Create RevwalkConfig from environment variables.

        Args:
            validate: If True (default), raise ConfigurationError on any error.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed, or
                validate=True and the configuration is invalid.
        """
        errors: list[str] = []

        git_timeout = _parse_number(
            "REVWALK_GIT_TIMEOUT", DEFAULT_GIT_TIMEOUT_SECONDS, float, errors
        )
        remove_retries = _parse_number(
            "REVWALK_REMOVE_RETRIES", DEFAULT_REMOVE_RETRIES, int, errors
        )
        if errors:
            raise ConfigurationError(errors)

        debug_log = os.environ.get("REVWALK_DEBUG_LOG") or None

        config = cls(
            worktree_dir=get_worktree_dir(),
            git_timeout_seconds=git_timeout,
            remove_retries=remove_retries,
            debug_log_path=Path(debug_log) if debug_log else None,
        )

        if validate:
            errors = config.validate()
            if errors:
                raise ConfigurationError(errors)

        return config

    def validate(self, repo_path: Path | None = None) -> list[str]:
        """Validate configuration and return a list of errors.

        Args:
            repo_path: When given, also check that worktree_dir is not inside
                the repository.

        Returns:
            List of error messages. Empty list if configuration is valid.
        """
        errors: list[str] = []

        if not self.worktree_dir.is_absolute():
            errors.append(
                f"worktree_dir should be an absolute path, got: {self.worktree_dir}"
            )
        if self.git_timeout_seconds <= 0:
            errors.append(
                f"git_timeout_seconds must be positive, got: {self.git_timeout_seconds}"
            )
        if self.remove_retries < 1:
            errors.append(f"remove_retries must be at least 1, got: {self.remove_retries}")

        if repo_path is not None and is_within(self.worktree_dir, repo_path):
            errors.append(
                f"worktree_dir {self.worktree_dir} must not be inside the repository "
                f"{repo_path}"
            )

        return errors


def _parse_number(
    name: str, default: float | int, kind: type, errors: list[str]
) -> float | int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        errors.append(f"{name} must be a {kind.__name__}, got: {raw!r}")
        return default


def is_within(path: Path, parent: Path) -> bool:
    try:
        path.resolve().relative_to(parent.resolve())
    except ValueError:
        return False
    return True
