"""Pytest configuration for revwalk tests."""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


def pytest_configure(config: pytest.Config) -> None:
    """Configure test environment before collection.

    Redirects worktrees to /tmp so an aborted test run never leaves
    directories in the default location, and drops REVWALK_* overrides from
    the developer's shell.
    """
    for name in ("REVWALK_GIT_TIMEOUT", "REVWALK_REMOVE_RETRIES", "REVWALK_DEBUG_LOG"):
        os.environ.pop(name, None)
    os.environ["REVWALK_WORKTREE_DIR"] = "/tmp/revwalk-test-worktrees"


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Default unmarked tests to unit category."""
    for item in items:
        if any(marker in item.keywords for marker in ("unit", "integration")):
            continue
        item.add_marker(pytest.mark.unit)


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
        env={
            **os.environ,
            "GIT_AUTHOR_NAME": "Test",
            "GIT_AUTHOR_EMAIL": "test@example.com",
            "GIT_COMMITTER_NAME": "Test",
            "GIT_COMMITTER_EMAIL": "test@example.com",
            "GIT_CONFIG_NOSYSTEM": "1",
        },
    )
    return result.stdout.strip()


class GitRepo:
    """A scratch git repository with helpers for building history."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str) -> str:
        return _git(self.path, *args)

    def commit(
        self,
        subject: str,
        files: dict[str, str] | None = None,
        delete: tuple[str, ...] = (),
    ) -> str:
        for name, content in (files or {}).items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        for name in delete:
            self.git("rm", "-q", name)
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", subject)
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    """Repository on branch main with one base commit."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    repo = GitRepo(repo_path)
    repo.git("init", "-q", "-b", "main")
    repo.git("config", "user.name", "Test")
    repo.git("config", "user.email", "test@example.com")
    repo.git("config", "commit.gpgsign", "false")
    repo.commit("base", {"README.md": "base\n"})
    return repo


@pytest.fixture
def worktree_dir(tmp_path: Path) -> Path:
    path = tmp_path / "worktrees"
    path.mkdir()
    return path
