"""Cached catalog search with an offline partial replica."""

__version__ = "0.1.0"
