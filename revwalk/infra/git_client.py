"""Git Client: typed wrapper around the git binary.

Every operation runs git through a CommandRunner with stdout and stderr
captured, and turns a non-zero exit into a RevwalkError subclass carrying
the captured stderr. Callers only see structured results (RevisionWalk,
ChangedFileSet, paths); this is the one place where git's text output is
parsed.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import TYPE_CHECKING

from revwalk.core.errors import (
    CheckoutFailed,
    GitCommandError,
    InvalidRange,
    WorktreeCreationFailed,
    WorktreeRemovalFailed,
)
from revwalk.core.models import ChangedFileSet, Commit, RevisionWalk
from revwalk.infra.io.config import DEFAULT_GIT_TIMEOUT_SECONDS, DEFAULT_REMOVE_RETRIES
from revwalk.infra.tools.command_runner import CommandRunner

if TYPE_CHECKING:
    from revwalk.core.protocols import CommandResultProtocol, CommandRunnerPort

logger = logging.getLogger(__name__)

# Exit status reported when the git executable itself cannot be started
GIT_NOT_FOUND_EXIT_CODE = 127

# Field and record separators for the commit log format
_FIELD_SEP = "\x00"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x00%h%x00%P%x00%s%x1e"

_DEFAULT_BRANCH_CANDIDATES = ("main", "master")


class GitClient:
    """Runs git commands against one repository.

    Args:
        repo_path: Root of the primary repository.
        runner: Command runner; defaults to a CommandRunner rooted at repo_path.
        timeout_seconds: Timeout for each git invocation.
        remove_retries: Attempts to delete a worktree directory that git
            could not remove.
        retry_delay_seconds: Pause between removal attempts.
    """

    def __init__(
        self,
        repo_path: Path,
        runner: CommandRunnerPort | None = None,
        timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        remove_retries: int = DEFAULT_REMOVE_RETRIES,
        retry_delay_seconds: float = 0.2,
    ) -> None:
        self.repo_path = repo_path
        self.timeout_seconds = timeout_seconds
        self.remove_retries = remove_retries
        self.retry_delay_seconds = retry_delay_seconds
        self._runner: CommandRunnerPort = runner or CommandRunner(
            cwd=repo_path, timeout_seconds=timeout_seconds
        )

    @classmethod
    def discover(
        cls,
        start: Path,
        runner: CommandRunnerPort | None = None,
        **kwargs: float | int,
    ) -> GitClient:
        """Create a client for the repository containing start.

        Raises:
            GitCommandError: If start is not inside a git work tree.
        """
        probe = cls(start, runner=runner, **kwargs)  # type: ignore[arg-type]
        result = probe._git(["rev-parse", "--show-toplevel"])
        root = Path(result.stdout.strip())
        return cls(root, runner=runner, **kwargs)  # type: ignore[arg-type]

    # ------------------------------------------------------------------ git IO
    def _git(
        self,
        args: list[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
        error_cls: type[GitCommandError] = GitCommandError,
    ) -> CommandResultProtocol:
        cmd = ["git", *args]
        try:
            result = self._runner.run(
                cmd, timeout=self.timeout_seconds, cwd=cwd or self.repo_path
            )
        except OSError as e:
            raise error_cls(
                "git could not be started",
                command=cmd,
                returncode=GIT_NOT_FOUND_EXIT_CODE,
                stderr=str(e),
            ) from e

        if result.timed_out:
            raise error_cls(
                f"git {args[0]} timed out after {self.timeout_seconds}s",
                command=cmd,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        if check and result.returncode != 0:
            raise error_cls(
                f"git {args[0]} exited {result.returncode}",
                command=cmd,
                returncode=result.returncode,
                stderr=result.stderr or result.stdout,
            )
        return result

    # ------------------------------------------------------------- revisions
    def resolve_ref(self, ref: str) -> str:
        """Return the full commit hash for ref.

        Raises:
            InvalidRange: If ref does not name a commit.
        """
        result = self._git(
            ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False
        )
        sha = result.stdout.strip()
        if result.returncode != 0 or not sha:
            raise InvalidRange(f"Cannot resolve '{ref}' to a commit", base=ref)
        return sha

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._git(
            ["merge-base", "--is-ancestor", ancestor, descendant], check=False
        )
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GitCommandError(
            "git merge-base failed",
            command=["git", "merge-base", "--is-ancestor", ancestor, descendant],
            returncode=result.returncode,
            stderr=result.stderr,
        )

    def default_branch(self) -> str:
        """Return the repository's default branch.

        Prefers the remote HEAD (origin/HEAD), then the first existing local
        branch among main and master.

        Raises:
            InvalidRange: If no default branch can be determined.
        """
        remote = self._git(
            ["symbolic-ref", "--quiet", "--short", "refs/remotes/origin/HEAD"],
            check=False,
        )
        if remote.returncode == 0 and remote.stdout.strip():
            return remote.stdout.strip()

        for candidate in _DEFAULT_BRANCH_CANDIDATES:
            probe = self._git(
                ["rev-parse", "--verify", "--quiet", f"refs/heads/{candidate}"],
                check=False,
            )
            if probe.returncode == 0:
                return candidate

        raise InvalidRange(
            "Cannot determine the default branch; pass an explicit base commit"
        )

    def resolve_commit_range(self, base: str, tip: str = "HEAD") -> RevisionWalk:
        """List commits strictly after base up to tip, oldest first.

        Merge commits on the branch are followed along their first parent
        so the walk stays a single chain.

        Raises:
            InvalidRange: If base or tip does not resolve, or base is not an
                ancestor of tip.
        """
        base_sha = self.resolve_ref(base)
        tip_sha = self.resolve_ref(tip)
        if base_sha == tip_sha:
            return RevisionWalk(base=base_sha, tip=tip_sha)

        if not self.is_ancestor(base_sha, tip_sha):
            raise InvalidRange(f"'{base}' is not an ancestor of '{tip}'", base=base)

        result = self._git(
            [
                "log",
                "--reverse",
                "--first-parent",
                "--no-color",
                f"--format={_LOG_FORMAT}",
                f"{base_sha}..{tip_sha}",
            ]
        )
        commits = parse_commit_log(result.stdout)
        logger.debug(
            "Resolved %d commits: %s..%s", len(commits), base_sha[:12], tip_sha[:12]
        )
        return RevisionWalk(base=base_sha, tip=tip_sha, commits=tuple(commits))

    def diff_files(
        self, sha_from: str, sha_to: str, *, include_deleted: bool = True
    ) -> ChangedFileSet:
        """List paths that differ between two commits (unfiltered).

        Args:
            sha_from: The older commit.
            sha_to: The newer commit.
            include_deleted: When False, paths deleted in sha_to are omitted.

        Returns:
            ChangedFileSet; empty when both commits are the same.
        """
        if sha_from == sha_to:
            return ChangedFileSet()

        args = ["diff", "--name-only", "-z", "--no-renames", "--no-ext-diff"]
        if not include_deleted:
            args.append("--diff-filter=d")
        args.extend([sha_from, sha_to, "--"])
        result = self._git(args)
        return ChangedFileSet.of(p for p in result.stdout.split(_FIELD_SEP) if p)

    # -------------------------------------------------------------- worktrees
    def create_worktree(self, path: Path, start_sha: str) -> None:
        """Create a detached worktree at path checked out at start_sha.

        Raises:
            WorktreeCreationFailed: If path already exists or git fails.
        """
        if path.exists():
            raise WorktreeCreationFailed(f"Worktree path already exists: {path}")

        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._git(
                ["worktree", "add", "--detach", str(path), start_sha],
                error_cls=WorktreeCreationFailed,
            )
        except WorktreeCreationFailed:
            # Clean up any partial directory
            if path.exists():
                shutil.rmtree(path, ignore_errors=True)
            raise
        logger.debug("Created worktree %s at %s", path, start_sha[:12])

    def checkout(self, path: Path, sha: str) -> None:
        """Switch the worktree at path to sha (detached).

        Raises:
            CheckoutFailed: If the worktree is dirty or sha is unknown.
        """
        self._git(
            ["checkout", "--detach", "--quiet", sha],
            cwd=path,
            error_cls=CheckoutFailed,
        )

    def remove_worktree(self, path: Path) -> None:
        """Delete the worktree and its administrative metadata.

        Idempotent: an already-removed path is not an error. Git failures,
        including timeouts, fall through to deleting the directory directly.
        Returns only once the directory is confirmed absent.

        Raises:
            WorktreeRemovalFailed: If the directory survives every attempt.
        """
        last_error = ""
        if path.exists():
            try:
                result = self._git(
                    ["worktree", "remove", "--force", str(path)], check=False
                )
            except GitCommandError as e:
                last_error = str(e)
                logger.warning("git worktree remove failed for %s: %s", path, e)
            else:
                if result.returncode != 0:
                    last_error = result.stderr
                    logger.debug(
                        "git worktree remove failed for %s: %s", path, last_error
                    )

            attempt = 0
            while path.exists() and attempt < self.remove_retries:
                attempt += 1
                try:
                    shutil.rmtree(path)
                except OSError as e:
                    last_error = str(e)
                    logger.warning(
                        "Removing %s failed (attempt %d/%d): %s",
                        path,
                        attempt,
                        self.remove_retries,
                        e,
                    )
                    time.sleep(self.retry_delay_seconds)

        # Drop administrative entries for directories that are gone
        try:
            self._git(["worktree", "prune"], check=False)
        except GitCommandError as e:
            # Stale metadata is harmless once the directory is gone
            logger.warning("git worktree prune failed: %s", e)
            last_error = last_error or str(e)

        if path.exists():
            raise WorktreeRemovalFailed(
                f"Worktree {path} still exists after {self.remove_retries} attempts",
                command=["git", "worktree", "remove", "--force", str(path)],
                stderr=last_error,
            )

    def list_worktrees(self) -> list[Path]:
        """Return the paths of every worktree registered with the repository."""
        result = self._git(["worktree", "list", "--porcelain"])
        return parse_worktree_list(result.stdout)


def parse_commit_log(text: str) -> list[Commit]:
    """Parse output of `git log --format=%H%x00%h%x00%P%x00%s%x1e`."""
    commits: list[Commit] = []
    for record in text.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(_FIELD_SEP)
        if len(fields) < 4:
            raise GitCommandError(f"Unexpected git log record: {record!r}")
        sha, short_sha, parents, subject = fields[0], fields[1], fields[2], fields[3]
        parent_list = parents.split()
        commits.append(
            Commit(
                sha=sha,
                short_sha=short_sha,
                subject=subject,
                position=len(commits) + 1,
                parent=parent_list[0] if parent_list else None,
            )
        )
    return commits


def parse_worktree_list(text: str) -> list[Path]:
    """Parse `git worktree list --porcelain` into worktree paths."""
    paths: list[Path] = []
    for line in text.splitlines():
        if line.startswith("worktree "):
            paths.append(Path(line[len("worktree ") :]))
    return paths
