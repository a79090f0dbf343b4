"""Process execution and environment helpers."""
