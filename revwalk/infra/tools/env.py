"""Environment configuration and loading for revwalk.

Centralizes the user config directory and dotenv loading. The CLI calls
load_user_env() at bootstrap so REVWALK_* settings can live in
~/.config/revwalk/.env instead of the shell profile.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# User config directory (stores .env)
USER_CONFIG_DIR = Path.home() / ".config" / "revwalk"


def get_worktree_dir() -> Path:
    """Get the parent directory for worktrees, respecting REVWALK_WORKTREE_DIR.

    Evaluated at call time so values loaded from .env via load_user_env()
    are honoured.
    """
    default = Path(tempfile.gettempdir()) / "revwalk-worktrees"
    return Path(os.environ.get("REVWALK_WORKTREE_DIR", str(default)))


def load_user_env() -> None:
    """Load environment from ${USER_CONFIG_DIR}/.env.

    Existing environment variables win over values from the file.
    """
    load_dotenv(dotenv_path=USER_CONFIG_DIR / ".env")
