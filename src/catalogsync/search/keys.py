"""Cache key derivation for search terms."""

from __future__ import annotations


def normalize(term: str) -> str:
    """Return the cache key for ``term``: lowercased, otherwise verbatim.

    No trimming or stemming, so "loft " and "loft" are distinct keys.
    """
    return term.lower()
