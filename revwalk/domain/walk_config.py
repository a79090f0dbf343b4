"""Configuration dataclasses for revwalk.yaml.

Users describe how to validate a commit in revwalk.yaml: which changed files
are relevant, what to run once after the worktree is created, and which test
command to run per commit. The loader in config_loader.py parses the file
into these frozen dataclasses, which are treated as immutable for the whole
run.

Key types:
- SetupStep: a named executable + arguments run once inside the worktree
- TestCommand: the per-commit test command, with file substitution
- WalkConfig: top-level configuration
"""

from __future__ import annotations

from dataclasses import dataclass, field

from revwalk.core.errors import RevwalkError

# An argument equal to this token is replaced by the changed file list.
FILES_PLACEHOLDER = "{files}"

DEFAULT_CONFIG_FILENAME = "revwalk.yaml"


class ConfigError(RevwalkError):
    """Base exception for revwalk.yaml errors.

    Raised when the file has invalid syntax, unknown fields, wrong types,
    or missing required sections.
    """


class ConfigMissingError(ConfigError):
    """Raised when revwalk.yaml is not found.

    Example:
        >>> raise ConfigMissingError(Path("/path/to/repo/revwalk.yaml"))
        ConfigMissingError: revwalk.yaml not found at /path/to/repo/revwalk.yaml
    """

    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"{DEFAULT_CONFIG_FILENAME} not found at {path}")


@dataclass(frozen=True)
class SetupStep:
    """A setup step run once in the worktree before the walk starts.

    Attributes:
        name: Display name, used in SetupStepFailed.
        command: Executable to run.
        args: Arguments passed to the executable.
        timeout: Optional timeout in seconds. None means no limit.
    """

    name: str
    command: str
    args: tuple[str, ...] = ()
    timeout: int | None = None

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


@dataclass(frozen=True)
class TestCommand:
    """The test command run for every commit.

    If one of args equals FILES_PLACEHOLDER it is replaced by the changed
    files; otherwise the files are appended after args.
    """

    __test__ = False

    command: str
    args: tuple[str, ...] = ()

    @property
    def has_placeholder(self) -> bool:
        return FILES_PLACEHOLDER in self.args

    def build_argv(self, files: tuple[str, ...] | list[str]) -> list[str]:
        """Build the full argv for a list of files."""
        if not self.has_placeholder:
            return [self.command, *self.args, *files]
        argv = [self.command]
        for arg in self.args:
            if arg == FILES_PLACEHOLDER:
                argv.extend(files)
            else:
                argv.append(arg)
        return argv


@dataclass(frozen=True)
class WalkConfig:
    """Top-level revwalk.yaml configuration.

    Attributes:
        test: Command run for each commit.
        patterns: Glob patterns selecting relevant changed files. Empty means
            every changed file is relevant.
        setup: Steps run in declared order after the worktree is created.
        stop_on_failure: Stop the walk at the first failing commit instead
            of continuing through the rest of the history.
    """

    test: TestCommand
    patterns: tuple[str, ...] = ()
    setup: tuple[SetupStep, ...] = field(default=())
    stop_on_failure: bool = False
