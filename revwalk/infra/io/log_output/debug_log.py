"""Diagnostic logging for the revwalk logger namespace.

Console output goes through the event sink; this module only routes the
`logging` records emitted by revwalk modules (git invocations, retry
attempts, teardown details) to stderr or a file when --debug is given.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

_HANDLER_NAME = "revwalk_debug"
_LOGGER_NAME = "revwalk"


def configure_debug_logging(log_path: Path | None = None) -> logging.Handler | None:
    """Attach a DEBUG handler to the revwalk logger.

    Args:
        log_path: File to write to. None logs to stderr.

    Returns:
        The installed handler, or None if log_path could not be opened.
    """
    try:
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = logging.FileHandler(log_path)
        else:
            handler = logging.StreamHandler(sys.stderr)
    except OSError:
        # Read-only filesystem or permission denied: run without the file
        return None

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handler.set_name(_HANDLER_NAME)

    revwalk_logger = logging.getLogger(_LOGGER_NAME)
    revwalk_logger.setLevel(logging.DEBUG)

    # Remove any previous revwalk debug handler to avoid duplicates/leaks
    cleanup_debug_logging()
    revwalk_logger.addHandler(handler)
    return handler


def cleanup_debug_logging() -> bool:
    """Remove and close the debug handler.

    Returns:
        True if a handler was found and cleaned up, False otherwise.
    """
    revwalk_logger = logging.getLogger(_LOGGER_NAME)
    found = False
    for handler in revwalk_logger.handlers[:]:
        if getattr(handler, "name", "") == _HANDLER_NAME:
            handler.close()
            revwalk_logger.removeHandler(handler)
            found = True
    return found
