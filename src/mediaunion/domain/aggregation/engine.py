"""Statistics over playback history, keyed against canonical identities.

Every event is re-keyed at query time from the current records and groups,
then clustered with a fresh key index so statistics never depend on the
state a reconciliation run left behind. Persisted identities only supply
labels for the clusters.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import UUID

from mediaunion.domain.aggregation.completion import completion_percent, counts_as_play
from mediaunion.domain.identity import (
    GroupIndex,
    KeyIndex,
    extract_features,
    match_keys,
    parse_metadata,
    series_keys,
)
from mediaunion.domain.identity.resolve import identity_rank
from mediaunion.domain.model import MediaType, RecordRef, SourceRecord
from mediaunion.domain.time_windows import TimeRange, utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from mediaunion.domain.identity import IdentityFeatures, PlexMetadata
    from mediaunion.domain.model import CanonicalIdentity, PlaybackEvent
    from mediaunion.domain.ports import CatalogRepositories
    from mediaunion.domain.time_windows import Clock

log = logging.getLogger(__name__)

DEFAULT_POPULAR_LIMIT = 20
DEFAULT_MAX_EVENTS = 50_000


class SortBy(StrEnum):
    UNIQUE_USERS = "unique_users"
    TOTAL_PLAYS = "total_plays"


@dataclass(frozen=True, slots=True, kw_only=True)
class PopularItem:
    """One ranked title.

    ``ref`` is the identity id when a live identity owns the cluster, otherwise
    the cluster's first match key. ``granularity`` is the level the cluster was
    keyed at; pass it back to ``item_history`` to drill down into a raw key.
    """

    ref: str
    identity_id: UUID | None
    granularity: MediaType | None
    title: str
    media_type: MediaType
    year: int | None
    poster_ref: str | None
    users: frozenset[str]
    total_plays: int
    last_watched: datetime

    @property
    def unique_users(self) -> int:
        return len(self.users)


@dataclass(frozen=True, slots=True, kw_only=True)
class PlayDetail:
    title: str | None
    started_at: datetime
    played_seconds: float
    percent: int | None
    season: int | None
    episode: int | None
    server_id: str
    record_key: str


@dataclass(frozen=True, slots=True, kw_only=True)
class UserHistory:
    user: str
    play_count: int
    last_watched: datetime
    plays: tuple[PlayDetail, ...]


@dataclass(frozen=True, slots=True, kw_only=True)
class _KeyedPlay:
    event: PlaybackEvent
    features: IdentityFeatures
    metadata: PlexMetadata
    keys: tuple[str, ...]
    total_duration_ms: int | None
    fallback_title: str


class _Snapshot:
    """Records, groups, identities and key ownership read once per query."""

    def __init__(self, repositories: CatalogRepositories) -> None:
        self.records = {record.ref: record for record in repositories.source_records.list_all()}
        self.groups = GroupIndex(repositories.groups.list_all())
        self.identities = {identity.id: identity for identity in repositories.identities.list_all()}
        self.key_owners = dict(repositories.identity_keys.all())
        self._features: dict[RecordRef, IdentityFeatures] = {}

    def live_identity(self, identity_id: UUID | None) -> CanonicalIdentity | None:
        seen: set[UUID] = set()
        current = self.identities.get(identity_id) if identity_id is not None else None
        while current is not None and current.merged_into_id is not None:
            if current.id in seen:
                return None
            seen.add(current.id)
            current = self.identities.get(current.merged_into_id)
        return current

    def owner_of_key(self, key: str) -> CanonicalIdentity | None:
        return self.live_identity(self.key_owners.get(key))

    def record_features(self, record: SourceRecord) -> IdentityFeatures:
        cached = self._features.get(record.ref)
        if cached is None:
            cached = extract_features(record)
            self._features[record.ref] = cached
        return cached

    def show_record_for(
        self, record: SourceRecord, features: IdentityFeatures
    ) -> SourceRecord | None:
        if features.show_record_key is None:
            return None
        return self.records.get(RecordRef(record.server_id, features.show_record_key))


def _accepts(granularity: MediaType | None, media_type: MediaType) -> bool:
    match granularity:
        case None:
            return True
        case MediaType.SHOW:
            return media_type in (MediaType.SHOW, MediaType.EPISODE)
        case _:
            return media_type is granularity


def _cluster(plays: Sequence[_KeyedPlay]) -> tuple[KeyIndex[int], dict[int, list[_KeyedPlay]]]:
    index = KeyIndex[int]()
    counter = itertools.count()
    for play in plays:
        index.attach(play.keys, create=lambda: next(counter))

    clusters: dict[int, list[_KeyedPlay]] = {}
    for play in plays:
        owner = index.owner_of(play.keys[0])
        if owner is not None:
            clusters.setdefault(owner, []).append(play)
    return index, clusters


class AggregationEngine:
    """Read-only statistics queries over one repository collection."""

    def __init__(
        self,
        repositories: CatalogRepositories,
        *,
        clock: Clock = utcnow,
        max_events: int = DEFAULT_MAX_EVENTS,
    ) -> None:
        self._repositories = repositories
        self._clock = clock
        self._max_events = max_events

    def popular(
        self,
        time_range: TimeRange | str = TimeRange.DAY,
        *,
        media_type: MediaType | str | None = None,
        sort_by: SortBy | str = SortBy.UNIQUE_USERS,
        limit: int = DEFAULT_POPULAR_LIMIT,
    ) -> list[PopularItem]:
        """Rank titles by unique users or total plays within ``time_range``.

        ``media_type`` selects the granularity: movies, shows (episodes rolled up
        to their show), episodes, or ``None`` for every title at its own level.
        """

        window = TimeRange.parse(time_range)
        granularity = MediaType(media_type) if media_type is not None else None
        order = SortBy(sort_by)

        snapshot = _Snapshot(self._repositories)
        plays = self._keyed_plays(snapshot, window, granularity)
        index, clusters = _cluster(plays)

        items = [
            self._summarize(snapshot, index.keys_of(owner), members, granularity)
            for owner, members in clusters.items()
        ]
        if order is SortBy.UNIQUE_USERS:
            items.sort(key=lambda i: (-i.unique_users, -i.total_plays, i.title.casefold(), i.ref))
        else:
            items.sort(key=lambda i: (-i.total_plays, -i.unique_users, i.title.casefold(), i.ref))

        log.debug(
            "Popular %s (%s, %s): %d plays in %d clusters",
            window.value,
            granularity,
            order.value,
            len(plays),
            len(items),
        )
        return items[: max(limit, 0)]

    def item_history(
        self,
        ref: UUID | str,
        time_range: TimeRange | str = TimeRange.DAY,
        *,
        media_type: MediaType | str | None = None,
    ) -> list[UserHistory]:
        """Return per-user plays of one identity (by id) or one raw match key.

        A raw key is keyed at ``media_type``, the granularity it was ranked at.
        Without one the key's own level is tried first, then the show level.
        Unknown or stale references yield an empty list.
        """

        window = TimeRange.parse(time_range)
        snapshot = _Snapshot(self._repositories)
        target = self._target(snapshot, ref, media_type)
        if target is None:
            return []
        granularities, target_keys = target

        for granularity in granularities:
            plays = self._keyed_plays(snapshot, window, granularity)
            index, clusters = _cluster(plays)
            owners = {owner for key in target_keys if (owner := index.owner_of(key)) is not None}
            matched = [play for owner in owners for play in clusters.get(owner, ())]
            if matched:
                return _histories(matched)
        return []

    def _keyed_plays(
        self,
        snapshot: _Snapshot,
        window: TimeRange,
        granularity: MediaType | None,
    ) -> list[_KeyedPlay]:
        events = self._repositories.playback_events.query(
            cutoff=window.cutoff(clock=self._clock),
            limit=self._max_events,
        )
        events = sorted(events, key=lambda e: (e.start_time, str(e.id)), reverse=True)
        plays: list[_KeyedPlay] = []
        for event in events:
            play = self._key_event(snapshot, event, granularity)
            if play is not None:
                plays.append(play)
        return plays

    def _key_event(
        self,
        snapshot: _Snapshot,
        event: PlaybackEvent,
        granularity: MediaType | None,
    ) -> _KeyedPlay | None:
        metadata = parse_metadata(event.raw_metadata)
        record = snapshot.records.get(event.ref)
        if record is None:
            record = SourceRecord(
                server_id=event.server_id,
                record_key=event.record_key,
                title=event.title or metadata.title or "",
                raw_metadata=event.raw_metadata,
            )
            features = extract_features(record, subtitle=event.subtitle_text, metadata=metadata)
        else:
            features = extract_features(record, subtitle=event.subtitle_text)

        total_duration_ms = metadata.duration or features.duration_ms
        if not counts_as_play(event.played_duration_seconds, total_duration_ms):
            return None
        if not _accepts(granularity, features.media_type):
            return None

        show_record = snapshot.show_record_for(record, features)
        if granularity is MediaType.SHOW:
            keys = series_keys(record, features, snapshot.groups, show_record=show_record)
            fallback_title = (
                (show_record.title if show_record is not None else None)
                or features.series_name
                or features.display_title
            )
        else:
            keys = match_keys(record, features, snapshot.groups)
            fallback_title = features.display_title or event.title or ""

        return _KeyedPlay(
            event=event,
            features=features,
            metadata=metadata,
            keys=keys,
            total_duration_ms=total_duration_ms,
            fallback_title=fallback_title,
        )

    def _summarize(
        self,
        snapshot: _Snapshot,
        keys: Sequence[str],
        plays: Sequence[_KeyedPlay],
        granularity: MediaType | None,
    ) -> PopularItem:
        users = frozenset(play.event.user for play in plays)
        last_watched = max(play.event.start_time for play in plays)

        owners = {owner.id: owner for key in keys if (owner := snapshot.owner_of_key(key))}
        if owners:
            identity = min(owners.values(), key=identity_rank)
            return PopularItem(
                ref=str(identity.id),
                identity_id=identity.id,
                granularity=granularity,
                title=identity.title or plays[0].fallback_title,
                media_type=identity.media_type,
                year=identity.year,
                poster_ref=identity.poster_ref or _first_poster(plays),
                users=users,
                total_plays=len(plays),
                last_watched=last_watched,
            )

        first = plays[0]
        return PopularItem(
            ref=keys[0],
            identity_id=None,
            granularity=granularity,
            title=first.fallback_title,
            media_type=granularity or first.features.media_type,
            year=first.features.series_year
            if granularity is MediaType.SHOW
            else first.features.year,
            poster_ref=_first_poster(plays),
            users=users,
            total_plays=len(plays),
            last_watched=last_watched,
        )

    def _target(
        self,
        snapshot: _Snapshot,
        ref: UUID | str,
        media_type: MediaType | str | None,
    ) -> tuple[tuple[MediaType | None, ...], set[str]] | None:
        if isinstance(ref, UUID):
            identity_id: UUID | None = ref
        else:
            try:
                identity_id = UUID(ref.strip())
            except ValueError:
                identity_id = None

        if identity_id is not None:
            identity = snapshot.live_identity(identity_id)
            if identity is None:
                log.debug("History requested for unknown identity %s", identity_id)
                return None
        else:
            key = str(ref).strip()
            identity = snapshot.owner_of_key(key)
            if identity is None:
                if media_type is not None:
                    return (MediaType(media_type),), {key}
                if key.startswith("series:"):
                    return (MediaType.SHOW, None), {key}
                return (None, MediaType.SHOW), {key}

        keys = {
            key
            for key, owner_id in snapshot.key_owners.items()
            if (owner := snapshot.live_identity(owner_id)) is not None and owner.same_as(identity)
        }
        for record in snapshot.records.values():
            linked = snapshot.live_identity(record.linked_identity_id)
            if linked is not None and linked.same_as(identity):
                keys.update(match_keys(record, snapshot.record_features(record), snapshot.groups))

        granularity = MediaType.SHOW if identity.media_type is MediaType.SHOW else None
        return (granularity,), keys


def _first_poster(plays: Iterable[_KeyedPlay]) -> str | None:
    return next((play.features.poster_ref for play in plays if play.features.poster_ref), None)


def _histories(plays: Iterable[_KeyedPlay]) -> list[UserHistory]:
    details_by_user: dict[str, list[PlayDetail]] = {}
    ordered = sorted(plays, key=lambda p: (p.event.start_time, str(p.event.id)), reverse=True)
    for play in ordered:
        event = play.event
        season = play.metadata.parent_index
        episode = play.metadata.index
        if season is None or episode is None:
            season, episode = play.features.season, play.features.episode
        details_by_user.setdefault(event.user, []).append(
            PlayDetail(
                title=event.title or play.features.display_title or None,
                started_at=event.start_time,
                played_seconds=event.played_duration_seconds,
                percent=completion_percent(event.played_duration_seconds, play.total_duration_ms),
                season=season,
                episode=episode,
                server_id=event.server_id,
                record_key=event.record_key,
            )
        )

    histories = [
        UserHistory(
            user=user,
            play_count=len(details),
            last_watched=details[0].started_at,
            plays=tuple(details),
        )
        for user, details in details_by_user.items()
    ]
    histories.sort(key=lambda h: (-h.last_watched.timestamp(), h.user))
    return histories
