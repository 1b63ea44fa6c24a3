"""Staged candidate screening with a gated application lifecycle."""

__version__ = "0.1.0"
