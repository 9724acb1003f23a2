"""Ukulima operator CLI."""
from ukulima import __version__

__all__ = ["__version__"]
