"""Glob matching of changed file paths against the configured pattern.

Pattern syntax:
- ``*`` matches any run of characters except ``/``
- ``?`` matches a single character except ``/``
- ``**`` matches anything, including ``/``; ``**/`` also matches zero
  directories, so ``src/**/*.py`` matches ``src/foo.py``
- every other character is literal

A pattern without ``/`` is matched against the file's basename, so ``*.py``
matches ``src/sub/foo.py``. Patterns containing ``/`` are matched against the
whole repository-relative path.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import TYPE_CHECKING

from revwalk.core.models import ChangedFileSet

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regular expression."""
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                if i + 2 < n and pattern[i + 2] == "/":
                    parts.append("(?:.*/)?")
                    i += 3
                else:
                    parts.append(".*")
                    i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        i += 1

    try:
        return re.compile("^" + "".join(parts) + "$")
    except re.error as e:
        logger.warning("Invalid glob pattern %r (%s); matching literally", pattern, e)
        return re.compile("^" + re.escape(pattern) + "$")


def _normalize(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


def matches_pattern(path: str, pattern: str) -> bool:
    """Check whether a repository-relative path matches a glob pattern."""
    path = _normalize(path)
    pattern = _normalize(pattern)
    if "/" not in pattern:
        target = path.rsplit("/", 1)[-1]
    else:
        target = path
    return glob_to_regex(pattern).match(target) is not None


def filter_matching_files(
    files: Iterable[str], patterns: Sequence[str]
) -> list[str]:
    """Return files matching any of the patterns, preserving order.

    An empty pattern list matches everything.
    """
    if not patterns:
        return list(files)
    return [f for f in files if any(matches_pattern(f, p) for p in patterns)]


def filter_changed_files(
    changed: ChangedFileSet, patterns: Sequence[str]
) -> ChangedFileSet:
    """Apply the configured patterns to an unfiltered ChangedFileSet."""
    return ChangedFileSet.of(filter_matching_files(changed.paths, patterns))
