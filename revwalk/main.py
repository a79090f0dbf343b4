#!/usr/bin/env python3
"""
revwalk: replay a branch commit by commit against its test suite.

This module is a thin shim that exposes the CLI app from revwalk.cli.
The actual implementation lives in revwalk/cli/cli.py.

Usage:
    revwalk run [OPTIONS] [REPO_PATH]
    revwalk range [OPTIONS] [REPO_PATH]
    revwalk clean [REPO_PATH]
"""

from .cli import bootstrap

# Load ~/.config/revwalk/.env before any command reads REVWALK_* settings
bootstrap()

from .cli import app  # noqa: E402

if __name__ == "__main__":
    app()
