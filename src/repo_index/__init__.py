"""Crash-safe incremental source indexing."""

__version__ = "0.1.0"
