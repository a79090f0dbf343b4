"""YAML configuration loader for revwalk.yaml.

Loads, parses, and validates the walk configuration. Validation is strict:
unknown fields are rejected and every type is checked so that a typo fails
before any worktree is created.

Key functions:
- load_walk_config: Load and validate a config file at an explicit path
- load_walk_config_from_repo: Load revwalk.yaml from a repository root
- build_walk_config: Convert a parsed dict into WalkConfig
"""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING, Any

import yaml

from revwalk.domain.walk_config import (
    DEFAULT_CONFIG_FILENAME,
    ConfigError,
    ConfigMissingError,
    SetupStep,
    TestCommand,
    WalkConfig,
)

if TYPE_CHECKING:
    from pathlib import Path


# Fields allowed at the top level of revwalk.yaml
_ALLOWED_TOP_LEVEL_FIELDS = frozenset({"pattern", "setup", "test", "stop_on_failure"})

_SETUP_STEP_FIELDS = frozenset({"name", "command", "args", "timeout"})

_TEST_FIELDS = frozenset({"command", "args"})


def load_walk_config(config_path: Path) -> WalkConfig:
    """Load and validate a walk configuration file.

    Args:
        config_path: Path to the YAML file.

    Returns:
        WalkConfig instance.

    Raises:
        ConfigMissingError: If the file does not exist.
        ConfigError: If the file cannot be read, has invalid YAML syntax,
            contains unknown fields, or has invalid types.
    """
    if not config_path.exists():
        raise ConfigMissingError(config_path)

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Failed to decode {config_path}: {e}") from e

    data = _parse_yaml(content)
    return build_walk_config(data)


def load_walk_config_from_repo(repo_path: Path) -> WalkConfig:
    """Load revwalk.yaml from the repository root."""
    return load_walk_config(repo_path / DEFAULT_CONFIG_FILENAME)


def _parse_yaml(content: str) -> dict[str, Any]:
    """Parse YAML content into a dictionary.

    Raises:
        ConfigError: If YAML syntax is invalid or the document is not a mapping.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {DEFAULT_CONFIG_FILENAME}: {e}") from e

    # Handle empty file or file with only comments
    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(
            f"{DEFAULT_CONFIG_FILENAME} must be a YAML mapping, got {type(data).__name__}"
        )

    return data


def build_walk_config(data: dict[str, Any]) -> WalkConfig:
    """Convert a parsed YAML mapping into WalkConfig.

    Raises:
        ConfigError: On unknown fields, missing 'test', or invalid types.
    """
    unknown_fields = set(data.keys()) - _ALLOWED_TOP_LEVEL_FIELDS
    if unknown_fields:
        # str() handles non-string YAML keys (null, integers)
        first_unknown = sorted(str(k) for k in unknown_fields)[0]
        raise ConfigError(f"Unknown field '{first_unknown}' in {DEFAULT_CONFIG_FILENAME}")

    if "test" not in data or data["test"] is None:
        raise ConfigError(f"'test' is required in {DEFAULT_CONFIG_FILENAME}")

    stop_on_failure = data.get("stop_on_failure", False)
    if not isinstance(stop_on_failure, bool):
        raise ConfigError(
            f"'stop_on_failure' must be a boolean, got {type(stop_on_failure).__name__}"
        )

    return WalkConfig(
        test=_parse_test(data["test"]),
        patterns=_parse_patterns(data.get("pattern")),
        setup=_parse_setup(data.get("setup")),
        stop_on_failure=stop_on_failure,
    )


def _parse_patterns(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        if not value.strip():
            raise ConfigError("'pattern' cannot be an empty string")
        return (value,)
    if isinstance(value, list):
        patterns: list[str] = []
        for i, item in enumerate(value):
            if not isinstance(item, str) or not item.strip():
                raise ConfigError(f"'pattern' entry {i} must be a non-empty string")
            patterns.append(item)
        return tuple(patterns)
    raise ConfigError(
        f"'pattern' must be a string or list of strings, got {type(value).__name__}"
    )


def _parse_args(value: object, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"'args' must be a list in {where}, got {type(value).__name__}")
    args: list[str] = []
    for i, item in enumerate(value):
        # Numbers are common in argument lists (e.g. "-n", 4); booleans are not
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            raise ConfigError(
                f"'args' entry {i} in {where} must be a string, got {type(item).__name__}"
            )
        args.append(str(item))
    return tuple(args)


def _split_shorthand(value: str, where: str) -> list[str]:
    try:
        parts = shlex.split(value)
    except ValueError as e:
        raise ConfigError(f"Cannot parse command in {where}: {e}") from e
    if not parts:
        raise ConfigError(f"Command in {where} cannot be empty")
    return parts


def _parse_test(value: object) -> TestCommand:
    """Parse the 'test' section.

    Accepts a shorthand string ("pytest -q") or an object with 'command'
    and optional 'args'.
    """
    if isinstance(value, str):
        parts = _split_shorthand(value, "'test'")
        return TestCommand(command=parts[0], args=tuple(parts[1:]))

    if not isinstance(value, dict):
        raise ConfigError(f"'test' must be a string or object, got {type(value).__name__}")

    unknown = set(value.keys()) - _TEST_FIELDS
    if unknown:
        first = sorted(str(k) for k in unknown)[0]
        raise ConfigError(f"Unknown field '{first}' in 'test'")

    command = value.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ConfigError("'test' must have a non-empty 'command' string")

    return TestCommand(command=command, args=_parse_args(value.get("args"), "'test'"))


def _parse_setup(value: object) -> tuple[SetupStep, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"'setup' must be a list, got {type(value).__name__}")

    steps: list[SetupStep] = []
    seen: set[str] = set()
    for i, entry in enumerate(value):
        step = _parse_setup_step(entry, i)
        if step.name in seen:
            raise ConfigError(f"Duplicate setup step name '{step.name}'")
        seen.add(step.name)
        steps.append(step)
    return tuple(steps)


def _parse_setup_step(entry: object, index: int) -> SetupStep:
    """Parse one setup step.

    A string entry is shorthand: "pip install -e ." becomes a step named
    after its executable.
    """
    where = f"setup step {index}"
    if isinstance(entry, str):
        parts = _split_shorthand(entry, where)
        return SetupStep(name=parts[0], command=parts[0], args=tuple(parts[1:]))

    if not isinstance(entry, dict):
        raise ConfigError(
            f"{where} must be a string or object, got {type(entry).__name__}"
        )

    unknown = set(entry.keys()) - _SETUP_STEP_FIELDS
    if unknown:
        first = sorted(str(k) for k in unknown)[0]
        raise ConfigError(f"Unknown field '{first}' in {where}")

    command = entry.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ConfigError(f"{where} must have a non-empty 'command' string")

    name = entry.get("name", command)
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"'name' must be a non-empty string in {where}")

    timeout = entry.get("timeout")
    if timeout is not None:
        # Reject booleans explicitly (bool is subclass of int)
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
            raise ConfigError(f"'timeout' must be a positive integer in {where}")

    return SetupStep(
        name=name,
        command=command,
        args=_parse_args(entry.get("args"), where),
        timeout=timeout,
    )
