"""Command-line interface for revwalk."""

from revwalk.cli.cli import app, bootstrap

__all__ = ["app", "bootstrap"]
