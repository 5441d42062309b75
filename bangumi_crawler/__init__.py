"""Broadcast schedule crawler for seasonal anime titles."""

__version__ = "0.1.0"
