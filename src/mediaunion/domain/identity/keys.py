"""Match-key generation.

A record's keys are an ordered tuple of strings; two records that share any
key end up on the same canonical identity. Keys in priority order:

``group:<id>`` / ``group:<id>:s<S>:e<E>``
    administrator groups, exclusive when present
``imdb:`` / ``tmdb:`` / ``tvdb:`` / ``plex:``
    external identifiers
``series:<slug>`` / ``show:<slug>:s<S>:e<E>`` / ``movie:<slug>``
    title based keys
``record:<key>@<server>``
    isolation key when an episode cannot be placed
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from mediaunion.domain.identity.extract import IdentityFeatures, extract_features
from mediaunion.domain.model import ExternalNamespace, MediaType, RecordRef

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from mediaunion.domain.model import Group, SourceRecord

_NON_ALNUM: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]")
_UNKNOWN_YEAR: Final[str] = "xxxx"
_EXTERNAL_ORDER: Final[tuple[ExternalNamespace, ...]] = (
    ExternalNamespace.IMDB,
    ExternalNamespace.TMDB,
    ExternalNamespace.TVDB,
    ExternalNamespace.PLEX,
)

GROUP_PREFIX: Final[str] = "group:"
RECORD_PREFIX: Final[str] = "record:"


def slug(title: str, year: int | None = None) -> str:
    """Lowercase, strip everything outside ``[a-z0-9]`` and append the year."""

    return f"{_NON_ALNUM.sub('', title.lower())}-{year or _UNKNOWN_YEAR}"


def group_key(group_id: UUID) -> str:
    return f"{GROUP_PREFIX}{group_id}"


def group_episode_key(group_id: UUID, season: int, episode: int) -> str:
    return f"{GROUP_PREFIX}{group_id}:s{season}:e{episode}"


def external_key(namespace: ExternalNamespace, value: str) -> str:
    return f"{namespace.value}:{value}"


def series_key(name: str, year: int | None = None) -> str:
    return f"series:{slug(name, year)}"


def show_episode_key(series_name: str, season: int, episode: int) -> str:
    return f"show:{slug(series_name)}:s{season}:e{episode}"


def movie_key(title: str, year: int | None = None) -> str:
    return f"movie:{slug(title, year)}"


def isolation_key(ref: RecordRef) -> str:
    return f"{RECORD_PREFIX}{ref.record_key}@{ref.server_id}"


class GroupIndex:
    """Lookup of group coverage by record location.

    A record listed in several groups belongs to the first one given.
    """

    def __init__(self, groups: Iterable[Group] = ()) -> None:
        self._group_by_ref: dict[RecordRef, UUID] = {}
        for group in groups:
            for ref in group.member_refs():
                self._group_by_ref.setdefault(ref, group.id)

    def __len__(self) -> int:
        return len(self._group_by_ref)

    def group_for(self, ref: RecordRef) -> UUID | None:
        return self._group_by_ref.get(ref)

    def show_group_for(self, record: SourceRecord, features: IdentityFeatures) -> UUID | None:
        """Return the group covering an episode's show record, if any."""

        if features.show_record_key is None:
            return None
        return self.group_for(RecordRef(record.server_id, features.show_record_key))


def _unique(keys: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(keys))


def _episode_title_keys(record: SourceRecord, features: IdentityFeatures) -> list[str]:
    if features.series_name and features.season is not None and features.episode is not None:
        return [show_episode_key(features.series_name, features.season, features.episode)]
    return [isolation_key(record.ref)]


def match_keys(
    record: SourceRecord,
    features: IdentityFeatures,
    groups: GroupIndex,
) -> tuple[str, ...]:
    """Return the ordered, duplicate-free match keys of ``record``."""

    if features.media_type is MediaType.EPISODE:
        show_group = groups.show_group_for(record, features)
        if show_group is not None:
            if features.season is None or features.episode is None:
                return (isolation_key(record.ref),)
            return (group_episode_key(show_group, features.season, features.episode),)
    else:
        own_group = groups.group_for(record.ref)
        if own_group is not None:
            return (group_key(own_group),)

    keys = [
        external_key(namespace, features.external_ids[namespace])
        for namespace in _EXTERNAL_ORDER
        if namespace in features.external_ids
    ]
    match features.media_type:
        case MediaType.SHOW:
            keys.append(series_key(features.display_title, features.year))
        case MediaType.EPISODE:
            keys.extend(_episode_title_keys(record, features))
        case MediaType.MOVIE:
            keys.append(movie_key(features.display_title, features.year))
    return _unique(keys)


def series_keys(
    record: SourceRecord,
    features: IdentityFeatures,
    groups: GroupIndex,
    *,
    show_record: SourceRecord | None = None,
) -> tuple[str, ...]:
    """Return the show-level keys of a record for show-granularity statistics.

    Shows map to their own keys; episodes map to the group covering their show,
    the show record's keys, a series slug, or their isolation key, in that order.
    """

    if features.media_type is not MediaType.EPISODE:
        return match_keys(record, features, groups)

    show_group = groups.show_group_for(record, features)
    if show_group is not None:
        return (group_key(show_group),)
    if show_record is not None:
        return match_keys(show_record, extract_features(show_record), groups)
    if features.series_name:
        return (series_key(features.series_name, features.series_year),)
    return (isolation_key(record.ref),)
