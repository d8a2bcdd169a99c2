"""In-memory catalog repositories and builders for domain tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Literal

from mediaunion.domain.model import (
    CanonicalIdentity,
    Group,
    MediaType,
    PlaybackEvent,
    ReconciliationRun,
    RecordRef,
    RunStatus,
    SourceRecord,
)
from mediaunion.domain.ports import CatalogRepositories

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping
    from uuid import UUID

DEFAULT_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FixedClock:
    """Deterministic clock; every reading advances by ``step``."""

    def __init__(
        self,
        now: datetime = DEFAULT_NOW,
        *,
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.now = now
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def make_record(
    server_id: str,
    record_key: str,
    title: str,
    *,
    year: int | None = None,
    media_type: MediaType | None = None,
    parent_record_key: str | None = None,
    metadata: Mapping[str, object] | None = None,
) -> SourceRecord:
    return SourceRecord(
        server_id=server_id,
        record_key=record_key,
        title=title,
        year=year,
        media_type=media_type,
        parent_record_key=parent_record_key,
        raw_metadata=json.dumps(metadata) if metadata is not None else None,
    )


def make_event(
    user: str,
    server_id: str,
    record_key: str,
    *,
    start_time: datetime,
    played_seconds: float,
    title: str | None = None,
    subtitle_text: str | None = None,
    metadata: Mapping[str, object] | None = None,
) -> PlaybackEvent:
    return PlaybackEvent(
        user=user,
        server_id=server_id,
        record_key=record_key,
        start_time=start_time,
        played_duration_seconds=played_seconds,
        title=title,
        subtitle_text=subtitle_text,
        raw_metadata=json.dumps(metadata) if metadata is not None else None,
    )


def guids(*values: str) -> list[dict[str, str]]:
    return [{"id": value} for value in values]


class FakeSourceRecordRepository:
    def __init__(self, initial: Iterable[SourceRecord] = ()) -> None:
        self.items: dict[RecordRef, SourceRecord] = {}
        for record in initial:
            self.add(record)

    def add(self, entity: SourceRecord) -> None:
        self.items[entity.ref] = entity

    def get(self, server_id: str, record_key: str) -> SourceRecord | None:
        return self.items.get(RecordRef(server_id, record_key))

    def list_all(self) -> list[SourceRecord]:
        return [self.items[ref] for ref in sorted(self.items)]

    def linked_to(self, identity_id: UUID) -> list[SourceRecord]:
        return [record for record in self.list_all() if record.linked_identity_id == identity_id]

    def link(self, server_id: str, record_key: str, identity_id: UUID | None) -> None:
        record = self.get(server_id, record_key)
        if record is None:
            raise LookupError(f"unknown source record {record_key}@{server_id}")
        record.linked_identity_id = identity_id


class FakeCanonicalIdentityRepository:
    def __init__(self) -> None:
        self.items: dict[UUID, CanonicalIdentity] = {}

    def add(self, entity: CanonicalIdentity) -> None:
        self.items[entity.id] = entity

    def get(self, identity_id: UUID) -> CanonicalIdentity | None:
        return self.items.get(identity_id)

    def list_all(self) -> list[CanonicalIdentity]:
        return list(self.items.values())

    def live(self) -> list[CanonicalIdentity]:
        return [identity for identity in self.items.values() if identity.is_live]

    def create(
        self,
        *,
        primary_key: str,
        title: str,
        media_type: MediaType,
        year: int | None = None,
        poster_ref: str | None = None,
        created_at: datetime | None = None,
    ) -> CanonicalIdentity:
        identity = CanonicalIdentity(
            primary_key=primary_key,
            title=title,
            media_type=media_type,
            year=year,
            poster_ref=poster_ref,
            created_at=created_at,
            updated_at=created_at,
        )
        self.add(identity)
        return identity

    def update(self, identity_id: UUID, **fields: object) -> None:
        identity = self.items[identity_id]
        for name, value in fields.items():
            if not hasattr(identity, name) or name == "id":
                raise AttributeError(name)
            setattr(identity, name, value)

    def set_parent(self, identity_id: UUID, parent_id: UUID | None) -> None:
        self.items[identity_id].parent_identity_id = parent_id

    def children_of(self, parent_id: UUID) -> list[CanonicalIdentity]:
        return [i for i in self.items.values() if i.parent_identity_id == parent_id]

    def merged_into(self, survivor_id: UUID) -> list[CanonicalIdentity]:
        return [i for i in self.items.values() if i.merged_into_id == survivor_id]

    def delete(self, identity_id: UUID) -> None:
        del self.items[identity_id]


class FakeIdentityKeyRepository:
    def __init__(self) -> None:
        self.items: dict[str, UUID] = {}

    def all(self) -> dict[str, UUID]:
        return dict(self.items)

    def keys_of(self, identity_id: UUID) -> list[str]:
        return sorted(key for key, owner in self.items.items() if owner == identity_id)

    def assign(self, key: str, identity_id: UUID) -> None:
        self.items[key] = identity_id

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


class FakeGroupRepository:
    def __init__(self) -> None:
        self.items: dict[UUID, Group] = {}

    def add(self, entity: Group) -> None:
        self.items[entity.id] = entity

    def get(self, group_id: UUID) -> Group | None:
        return self.items.get(group_id)

    def list_all(self) -> list[Group]:
        return sorted(
            self.items.values(),
            key=lambda group: (group.created_at or DEFAULT_NOW, group.name),
        )

    def delete(self, group: Group) -> None:
        self.items.pop(group.id, None)


class FakePlaybackEventRepository:
    def __init__(self, initial: Iterable[PlaybackEvent] = ()) -> None:
        self.items: list[PlaybackEvent] = list(initial)

    def add(self, entity: PlaybackEvent) -> None:
        self.items.append(entity)

    def query(
        self,
        *,
        cutoff: datetime | None = None,
        records: Collection[RecordRef] | None = None,
        users: Collection[str] | None = None,
        limit: int | None = None,
    ) -> list[PlaybackEvent]:
        selected = [
            event
            for event in self.items
            if (cutoff is None or event.start_time >= cutoff)
            and (records is None or event.ref in records)
            and (users is None or event.user in users)
        ]
        selected.sort(key=lambda e: (e.start_time, str(e.id)), reverse=True)
        return selected if limit is None else selected[:limit]


class FakeReconciliationRunRepository:
    def __init__(self) -> None:
        self.items: dict[UUID, ReconciliationRun] = {}

    def add(self, entity: ReconciliationRun) -> None:
        self.items[entity.id] = entity

    def get(self, run_id: UUID) -> ReconciliationRun | None:
        return self.items.get(run_id)

    def list_running(self) -> list[ReconciliationRun]:
        return [run for run in self.items.values() if run.status is RunStatus.RUNNING]

    def list_recent(self, limit: int = 10) -> list[ReconciliationRun]:
        ordered = sorted(self.items.values(), key=lambda run: run.started_at, reverse=True)
        return ordered[:limit]


class FakeCatalogUnitOfWork:
    """Unit of work over shared in-memory repositories; call it to use it as a factory."""

    def __init__(self) -> None:
        self.source_records = FakeSourceRecordRepository()
        self.identities = FakeCanonicalIdentityRepository()
        self.identity_keys = FakeIdentityKeyRepository()
        self.groups = FakeGroupRepository()
        self.playback_events = FakePlaybackEventRepository()
        self.runs = FakeReconciliationRunRepository()
        self.repositories = CatalogRepositories(
            source_records=self.source_records,
            identities=self.identities,
            identity_keys=self.identity_keys,
            groups=self.groups,
            playback_events=self.playback_events,
            runs=self.runs,
        )
        self.commits = 0
        self.rollbacks = 0

    def __call__(self) -> FakeCatalogUnitOfWork:
        return self

    def __enter__(self) -> FakeCatalogUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: object | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def add_records(self, *records: SourceRecord) -> None:
        for record in records:
            self.repositories.source_records.add(record)

    def add_events(self, *events: PlaybackEvent) -> None:
        for event in events:
            self.repositories.playback_events.add(event)


if TYPE_CHECKING:
    from mediaunion.domain.ports import (
        CanonicalIdentityRepository,
        CatalogUnitOfWork,
        GroupRepository,
        IdentityKeyRepository,
        PlaybackEventRepository,
        ReconciliationRunRepository,
        SourceRecordRepository,
    )

    _record_repo: SourceRecordRepository = FakeSourceRecordRepository()
    _identity_repo: CanonicalIdentityRepository = FakeCanonicalIdentityRepository()
    _key_repo: IdentityKeyRepository = FakeIdentityKeyRepository()
    _group_repo: GroupRepository = FakeGroupRepository()
    _event_repo: PlaybackEventRepository = FakePlaybackEventRepository()
    _run_repo: ReconciliationRunRepository = FakeReconciliationRunRepository()
    _uow_check: CatalogUnitOfWork = FakeCatalogUnitOfWork()
