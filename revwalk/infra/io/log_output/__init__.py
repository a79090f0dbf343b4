"""Console output and diagnostic logging helpers."""
