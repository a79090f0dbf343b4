"""Console logging helpers for revwalk.

Colored, timestamped one-line messages with an optional label (the short
commit id being processed), plus an indented form for streamed test output.
"""

from datetime import datetime


# Global verbose setting (can be modified at runtime)
_verbose_enabled: bool = False


def set_verbose(enabled: bool) -> None:
    """Enable or disable verbose output globally."""
    global _verbose_enabled
    _verbose_enabled = enabled


def is_verbose_enabled() -> bool:
    """Check if verbose output is currently enabled."""
    return _verbose_enabled


def truncate_text(text: str, max_length: int) -> str:
    """Truncate text to max_length, adding ellipsis if truncated.

    Respects global verbose setting. If verbose is enabled,
    returns the original text unchanged.
    """
    if _verbose_enabled:
        return text
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


class Colors:
    """ANSI color codes for terminal output (bright variants)."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    RED = "\033[91m"
    GRAY = "\033[90m"
    WHITE = "\033[97m"
    # Subdued style for secondary info
    MUTED = "\033[90m"


# Palette cycled across labels so neighbouring commits are easy to tell apart
LABEL_COLORS = [
    "\033[96m",  # Bright Cyan
    "\033[93m",  # Bright Yellow
    "\033[95m",  # Bright Magenta
    "\033[94m",  # Bright Blue
]

_label_color_map: dict[str, str] = {}
_label_color_index = 0


def get_label_color(label: str) -> str:
    """Get a consistent color for a label."""
    global _label_color_index
    if label not in _label_color_map:
        _label_color_map[label] = LABEL_COLORS[_label_color_index % len(LABEL_COLORS)]
        _label_color_index += 1
    return _label_color_map[label]


def log(
    icon: str,
    message: str,
    color: str = Colors.RESET,
    dim: bool = False,
    label: str | None = None,
) -> None:
    """Print one timestamped line, optionally prefixed with a colored label."""
    style = Colors.MUTED if dim else ""
    timestamp = datetime.now().strftime("%H:%M:%S")

    if label:
        prefix = f"{get_label_color(label)}[{label}]{Colors.RESET} "
    else:
        prefix = ""

    print(
        f"{Colors.GRAY}{timestamp}{Colors.RESET} {prefix}{style}{color}{icon} {message}{Colors.RESET}"
    )


def log_verbose(
    icon: str,
    message: str,
    color: str = Colors.RESET,
    dim: bool = False,
    label: str | None = None,
) -> None:
    """Like log(), but only when verbose output is enabled."""
    if _verbose_enabled:
        log(icon, message, color, dim=dim, label=label)


def log_output_line(line: str, max_length: int = 200) -> None:
    """Print one line of child process output, indented and muted."""
    print(f"    {Colors.MUTED}{truncate_text(line, max_length)}{Colors.RESET}")
