"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.orm import Session  # noqa: TC002

from mediaunion.adapters.sqlalchemy.repositories import (
    SqlAlchemyCanonicalIdentityRepository,
    SqlAlchemyGroupRepository,
    SqlAlchemyIdentityKeyRepository,
    SqlAlchemyPlaybackEventRepository,
    SqlAlchemyReconciliationRunRepository,
    SqlAlchemySourceRecordRepository,
)
from mediaunion.domain.model import (
    Group,
    MediaType,
    ReconciliationRun,
    RecordRef,
)
from tests.helpers.catalog import make_event, make_record

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from mediaunion.domain.model import PlaybackEvent

BASE_TIME = datetime(2025, 6, 1, 12, tzinfo=UTC)


def _ids(events: Sequence[PlaybackEvent]) -> list[UUID]:
    return [event.id for event in events]


def test_source_records_are_listed_in_location_order(sqlite_session: Session) -> None:
    repository = SqlAlchemySourceRecordRepository(sqlite_session)
    repository.add(make_record("b", "1", "Heat"))
    repository.add(make_record("a", "2", "Heat"))
    repository.add(make_record("a", "10", "Heat"))
    sqlite_session.commit()

    refs = [record.ref for record in repository.list_all()]

    assert refs == [RecordRef("a", "10"), RecordRef("a", "2"), RecordRef("b", "1")]


def test_link_and_linked_to(sqlite_session: Session) -> None:
    records = SqlAlchemySourceRecordRepository(sqlite_session)
    identities = SqlAlchemyCanonicalIdentityRepository(sqlite_session)
    records.add(make_record("a", "1", "Heat", year=1995))
    identity = identities.create(
        primary_key="movie:heat-1995", title="Heat", media_type=MediaType.MOVIE
    )

    records.link("a", "1", identity.id)
    sqlite_session.commit()

    assert [record.ref for record in records.linked_to(identity.id)] == [RecordRef("a", "1")]
    with pytest.raises(LookupError):
        records.link("a", "missing", identity.id)


def test_identity_graph_operations(sqlite_session: Session) -> None:
    identities = SqlAlchemyCanonicalIdentityRepository(sqlite_session)
    show = identities.create(
        primary_key="series:theoffice-2005",
        title="The Office",
        media_type=MediaType.SHOW,
        created_at=BASE_TIME,
    )
    episode = identities.create(
        primary_key="show:theoffice-xxxx:s1:e1",
        title="Pilot",
        media_type=MediaType.EPISODE,
        created_at=BASE_TIME + timedelta(seconds=1),
    )
    duplicate = identities.create(
        primary_key="series:theofficeus-2005",
        title="The Office (US)",
        media_type=MediaType.SHOW,
        created_at=BASE_TIME + timedelta(seconds=2),
    )

    identities.set_parent(episode.id, show.id)
    identities.update(duplicate.id, merged_into_id=show.id, poster_ref="/thumb")
    sqlite_session.commit()

    assert [child.id for child in identities.children_of(show.id)] == [episode.id]
    assert [merged.id for merged in identities.merged_into(show.id)] == [duplicate.id]
    assert [identity.id for identity in identities.list_all()] == [
        show.id,
        episode.id,
        duplicate.id,
    ]
    with pytest.raises(AttributeError):
        identities.update(show.id, colour="red")

    identities.delete(duplicate.id)
    sqlite_session.commit()
    assert identities.get(duplicate.id) is None


def test_identity_timestamps_round_trip_as_utc(sqlite_session: Session) -> None:
    identities = SqlAlchemyCanonicalIdentityRepository(sqlite_session)
    identity = identities.create(
        primary_key="movie:heat-1995",
        title="Heat",
        media_type=MediaType.MOVIE,
        created_at=BASE_TIME,
    )
    sqlite_session.commit()
    sqlite_session.expire_all()

    loaded = identities.get(identity.id)

    assert loaded is not None
    assert loaded.created_at == BASE_TIME
    assert loaded.media_type is MediaType.MOVIE


def test_identity_keys_reassign_and_remove(sqlite_session: Session) -> None:
    identities = SqlAlchemyCanonicalIdentityRepository(sqlite_session)
    keys = SqlAlchemyIdentityKeyRepository(sqlite_session)
    first = identities.create(primary_key="imdb:tt1", title="Heat", media_type=MediaType.MOVIE)
    second = identities.create(primary_key="tmdb:2", title="Heat", media_type=MediaType.MOVIE)

    keys.assign("imdb:tt1", first.id)
    keys.assign("tmdb:2", second.id)
    keys.assign("tmdb:2", first.id)
    sqlite_session.commit()

    assert keys.all() == {"imdb:tt1": first.id, "tmdb:2": first.id}
    assert keys.keys_of(first.id) == ["imdb:tt1", "tmdb:2"]

    keys.remove("imdb:tt1")
    keys.remove("never-assigned")
    sqlite_session.commit()
    assert keys.keys_of(first.id) == ["tmdb:2"]


def test_group_members_persist_in_order(sqlite_session: Session) -> None:
    groups = SqlAlchemyGroupRepository(sqlite_session)
    group = Group(name="Dune", media_type=MediaType.MOVIE, created_at=BASE_TIME)
    group.replace_members([RecordRef("b", "2"), RecordRef("a", "1")])
    groups.add(group)
    sqlite_session.commit()

    loaded = groups.get(group.id)
    assert loaded is not None
    loaded.replace_members([RecordRef("a", "1"), RecordRef("c", "3")])
    sqlite_session.commit()
    sqlite_session.expire_all()

    reloaded = groups.get(group.id)
    assert reloaded is not None
    assert reloaded.member_refs() == [RecordRef("a", "1"), RecordRef("c", "3")]
    assert groups.list_all() == [reloaded]

    groups.delete(reloaded)
    sqlite_session.commit()
    assert groups.list_all() == []


def test_playback_query_filters_and_orders(sqlite_session: Session) -> None:
    repository = SqlAlchemyPlaybackEventRepository(sqlite_session)
    old = make_event("alice", "a", "1", start_time=BASE_TIME - timedelta(days=3), played_seconds=1)
    recent = make_event("bob", "a", "1", start_time=BASE_TIME, played_seconds=1)
    other = make_event(
        "alice", "b", "9", start_time=BASE_TIME - timedelta(hours=1), played_seconds=1
    )
    for event in (old, recent, other):
        repository.add(event)
    sqlite_session.commit()

    assert _ids(repository.query()) == [recent.id, other.id, old.id]
    assert _ids(repository.query(cutoff=BASE_TIME - timedelta(days=1))) == [recent.id, other.id]
    assert _ids(repository.query(users=["alice"])) == [other.id, old.id]
    assert _ids(repository.query(records=[RecordRef("a", "1")])) == [recent.id, old.id]
    assert _ids(repository.query(records=[RecordRef("a", "1")], limit=1)) == [recent.id]
    assert _ids(repository.query(records=[])) == []
    assert repository.query()[0].start_time == BASE_TIME


def test_runs_list_running_and_recent(sqlite_session: Session) -> None:
    repository = SqlAlchemyReconciliationRunRepository(sqlite_session)
    finished = ReconciliationRun(started_at=BASE_TIME - timedelta(hours=1))
    finished.fail(at=BASE_TIME, message="boom")
    running = ReconciliationRun(started_at=BASE_TIME)
    repository.add(finished)
    repository.add(running)
    sqlite_session.commit()

    assert [run.id for run in repository.list_running()] == [running.id]
    assert [run.id for run in repository.list_recent(limit=1)] == [running.id]
    assert repository.get(finished.id) is finished
