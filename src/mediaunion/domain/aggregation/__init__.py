"""Playback statistics against canonical identities."""

from __future__ import annotations

from .completion import completion_percent, completion_ratio, counts_as_play
from .engine import AggregationEngine, PlayDetail, PopularItem, SortBy, UserHistory

__all__ = [
    "AggregationEngine",
    "PlayDetail",
    "PopularItem",
    "SortBy",
    "UserHistory",
    "completion_percent",
    "completion_ratio",
    "counts_as_play",
]
