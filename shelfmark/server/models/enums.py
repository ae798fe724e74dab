"""Shared enumerations used across the server."""

from __future__ import annotations

from enum import StrEnum


class ViewMode(StrEnum):
    """Per-collection display preference persisted alongside the collection."""

    GRID = "grid"
    GRID2 = "grid2"
    LIST = "list"
    COMPACT = "compact"
    # Legacy alias still sent by older clients when creating collections.
    CARD = "card"
