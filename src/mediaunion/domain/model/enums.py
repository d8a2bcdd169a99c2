"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class MediaType(StrEnum):
    MOVIE = "movie"
    SHOW = "show"
    EPISODE = "episode"


class ExternalNamespace(StrEnum):
    """Namespaces of external identifiers; the value doubles as the match-key prefix."""

    IMDB = "imdb"
    TMDB = "tmdb"
    TVDB = "tvdb"
    PLEX = "plex"


class RunStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
