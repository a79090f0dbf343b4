"""Infrastructure layer: subprocess, git, filesystem, signals, and I/O."""
