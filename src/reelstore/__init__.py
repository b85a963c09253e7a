"""Incremental catalog loader and in-memory movie cache."""

__version__ = "0.1.0"

__all__ = ["__version__"]
