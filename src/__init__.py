# src/__init__.py — v1
"""Control Room pipeline engine."""

from controlroom.version import __version__

__all__ = ["__version__"]
