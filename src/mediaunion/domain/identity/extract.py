"""Derive identity features from a source record and its metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from mediaunion.domain.identity.metadata import PlexMetadata, parse_metadata
from mediaunion.domain.model import ExternalNamespace, MediaType

if TYPE_CHECKING:
    from collections.abc import Mapping

    from mediaunion.domain.model import SourceRecord

_SEASON_EPISODE: Final[re.Pattern[str]] = re.compile(r"s(\d+)e(\d+)", re.IGNORECASE)
_SCHEME_SEPARATOR: Final[str] = "://"


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityFeatures:
    """Normalized identity signals of one record."""

    media_type: MediaType
    display_title: str
    year: int | None = None
    external_ids: Mapping[ExternalNamespace, str] = field(
        default_factory=dict[ExternalNamespace, str]
    )
    series_name: str | None = None
    series_year: int | None = None
    season: int | None = None
    episode: int | None = None
    poster_ref: str | None = None
    show_record_key: str | None = None
    duration_ms: int | None = None

    @property
    def has_episode_numbering(self) -> bool:
        return self.season is not None and self.episode is not None


def parse_season_episode(text: str | None) -> tuple[int, int] | None:
    """Recover ``(season, episode)`` from text such as ``"S02E05 - The Fly"``."""

    if not text:
        return None
    match = _SEASON_EPISODE.search(text)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def split_external_id(raw: str) -> tuple[ExternalNamespace, str] | None:
    """Split ``imdb://tt1375666`` into its namespace and bare value."""

    scheme, separator, value = raw.partition(_SCHEME_SEPARATOR)
    if not separator or not value.strip():
        return None
    try:
        namespace = ExternalNamespace(scheme.strip().lower())
    except ValueError:
        return None
    return namespace, value.strip()


def scan_external_ids(metadata: PlexMetadata) -> dict[ExternalNamespace, str]:
    found: dict[ExternalNamespace, str] = {}
    for entry in metadata.guids:
        if entry.id is None:
            continue
        parsed = split_external_id(entry.id)
        if parsed is not None:
            namespace, value = parsed
            found[namespace] = value
    if ExternalNamespace.PLEX not in found and metadata.guid:
        parsed = split_external_id(metadata.guid)
        if parsed is not None and parsed[0] is ExternalNamespace.PLEX:
            found[ExternalNamespace.PLEX] = parsed[1]
    return found


def _declared_type(record: SourceRecord, metadata: PlexMetadata) -> MediaType | None:
    if record.media_type is not None:
        return MediaType(record.media_type)
    if metadata.type:
        try:
            return MediaType(metadata.type.lower())
        except ValueError:
            return None
    return None


def extract_features(
    record: SourceRecord,
    *,
    subtitle: str | None = None,
    metadata: PlexMetadata | None = None,
) -> IdentityFeatures:
    """Extract identity features; malformed metadata degrades to an empty payload."""

    payload = metadata if metadata is not None else parse_metadata(record.raw_metadata)
    numbering = parse_season_episode(subtitle)

    media_type = _declared_type(record, payload)
    if media_type is None:
        is_episode = payload.series_name is not None or numbering is not None
        media_type = MediaType.EPISODE if is_episode else MediaType.MOVIE

    title = record.title or payload.title or ""
    year = record.year if record.year is not None else payload.year
    external_ids = scan_external_ids(payload)

    if media_type is MediaType.SHOW:
        return IdentityFeatures(
            media_type=media_type,
            display_title=title,
            year=year,
            external_ids=external_ids,
            series_name=title or None,
            series_year=year,
            poster_ref=payload.thumb,
            duration_ms=payload.duration,
        )

    if media_type is MediaType.EPISODE:
        season, episode = payload.parent_index, payload.index
        if (season is None or episode is None) and numbering is not None:
            season, episode = numbering
        return IdentityFeatures(
            media_type=media_type,
            display_title=title,
            year=year,
            external_ids=external_ids,
            series_name=payload.series_name,
            season=season,
            episode=episode,
            poster_ref=payload.thumb or payload.grandparent_thumb,
            show_record_key=record.parent_record_key or payload.grandparent_rating_key,
            duration_ms=payload.duration,
        )

    return IdentityFeatures(
        media_type=media_type,
        display_title=title,
        year=year,
        external_ids=external_ids,
        poster_ref=payload.thumb,
        duration_ms=payload.duration,
    )
