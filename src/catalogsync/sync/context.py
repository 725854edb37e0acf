"""Explicit process state shared by the sync components."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SyncContext:
    """Mutable flags passed to components instead of read from globals."""

    offline: bool = False
