"""I/O utilities for revwalk.

This package contains:
- config: RevwalkConfig dataclass for environment configuration
- base_sink: BaseEventSink and NullEventSink
- console_sink: ConsoleEventSink for terminal output
- log_output/: Console helpers and diagnostic logging setup
"""

from revwalk.infra.io.base_sink import BaseEventSink, NullEventSink
from revwalk.infra.io.config import ConfigurationError, RevwalkConfig
from revwalk.infra.io.console_sink import ConsoleEventSink

__all__ = [
    "BaseEventSink",
    "ConfigurationError",
    "ConsoleEventSink",
    "NullEventSink",
    "RevwalkConfig",
]
