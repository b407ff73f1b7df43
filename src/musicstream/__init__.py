"""musicstream: multi-source music search with one playback transport."""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
