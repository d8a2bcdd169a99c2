"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import and_, or_, select

from mediaunion.adapters.sqlalchemy.mappings import (
    canonical_identity_table,
    identity_key_table,
    media_group_table,
    playback_event_table,
    reconciliation_run_table,
    source_record_table,
)
from mediaunion.domain.model import (
    CanonicalIdentity,
    Group,
    IdentityKey,
    PlaybackEvent,
    ReconciliationRun,
    RunStatus,
    SourceRecord,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Collection
    from datetime import datetime

    from sqlalchemy.orm import Session

    from mediaunion.domain.model import MediaType, RecordRef

# SQLite caps bound parameters per statement.
_RECORD_FILTER_CHUNK = 400


class SqlAlchemySourceRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SourceRecord) -> None:
        self.session.add(entity)

    def get(self, server_id: str, record_key: str) -> SourceRecord | None:
        stmt = (
            select(SourceRecord)
            .where(source_record_table.c.server_id == server_id)
            .where(source_record_table.c.record_key == record_key)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_all(self) -> list[SourceRecord]:
        stmt = select(SourceRecord).order_by(
            source_record_table.c.server_id, source_record_table.c.record_key
        )
        return list(self.session.execute(stmt).scalars())

    def linked_to(self, identity_id: uuid.UUID) -> list[SourceRecord]:
        stmt = (
            select(SourceRecord)
            .where(source_record_table.c.linked_identity_id == identity_id)
            .order_by(source_record_table.c.server_id, source_record_table.c.record_key)
        )
        return list(self.session.execute(stmt).scalars())

    def link(self, server_id: str, record_key: str, identity_id: uuid.UUID | None) -> None:
        record = self.get(server_id, record_key)
        if record is None:
            raise LookupError(f"unknown source record {record_key}@{server_id}")
        record.linked_identity_id = identity_id


class SqlAlchemyCanonicalIdentityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CanonicalIdentity) -> None:
        self.session.add(entity)

    def get(self, identity_id: uuid.UUID) -> CanonicalIdentity | None:
        return self.session.get(CanonicalIdentity, identity_id)

    def list_all(self) -> list[CanonicalIdentity]:
        stmt = select(CanonicalIdentity).order_by(
            canonical_identity_table.c.created_at, canonical_identity_table.c.id
        )
        return list(self.session.execute(stmt).scalars())

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
        self.session.add(identity)
        self.session.flush()
        return identity

    def update(self, identity_id: uuid.UUID, **fields: object) -> None:
        identity = self._require(identity_id)
        for name, value in fields.items():
            if not hasattr(identity, name) or name == "id":
                raise AttributeError(f"CanonicalIdentity has no updatable field {name!r}")
            setattr(identity, name, value)

    def set_parent(self, identity_id: uuid.UUID, parent_id: uuid.UUID | None) -> None:
        self._require(identity_id).parent_identity_id = parent_id

    def children_of(self, parent_id: uuid.UUID) -> list[CanonicalIdentity]:
        stmt = select(CanonicalIdentity).where(
            canonical_identity_table.c.parent_identity_id == parent_id
        )
        return list(self.session.execute(stmt).scalars())

    def merged_into(self, survivor_id: uuid.UUID) -> list[CanonicalIdentity]:
        stmt = select(CanonicalIdentity).where(
            canonical_identity_table.c.merged_into_id == survivor_id
        )
        return list(self.session.execute(stmt).scalars())

    def delete(self, identity_id: uuid.UUID) -> None:
        identity = self._require(identity_id)
        # Pointer updates must be flushed before the row is deleted.
        self.session.flush()
        self.session.delete(identity)

    def _require(self, identity_id: uuid.UUID) -> CanonicalIdentity:
        identity = self.get(identity_id)
        if identity is None:
            raise LookupError(f"unknown canonical identity {identity_id}")
        return identity


class SqlAlchemyIdentityKeyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def all(self) -> dict[str, uuid.UUID]:
        stmt = select(identity_key_table.c.key, identity_key_table.c.identity_id)
        return {key: identity_id for key, identity_id in self.session.execute(stmt).all()}

    def keys_of(self, identity_id: uuid.UUID) -> list[str]:
        stmt = (
            select(identity_key_table.c.key)
            .where(identity_key_table.c.identity_id == identity_id)
            .order_by(identity_key_table.c.key)
        )
        return list(self.session.execute(stmt).scalars())

    def assign(self, key: str, identity_id: uuid.UUID) -> None:
        existing = self.session.get(IdentityKey, key)
        if existing is None:
            self.session.add(IdentityKey(key=key, identity_id=identity_id))
            # Pending rows are invisible to ``session.get``.
            self.session.flush()
            return
        existing.identity_id = identity_id

    def remove(self, key: str) -> None:
        existing = self.session.get(IdentityKey, key)
        if existing is not None:
            self.session.delete(existing)


class SqlAlchemyGroupRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Group) -> None:
        self.session.add(entity)

    def get(self, group_id: uuid.UUID) -> Group | None:
        return self.session.get(Group, group_id)

    def list_all(self) -> list[Group]:
        stmt = select(Group).order_by(media_group_table.c.created_at, media_group_table.c.name)
        return list(self.session.execute(stmt).scalars())

    def delete(self, group: Group) -> None:
        self.session.delete(group)


class SqlAlchemyPlaybackEventRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: PlaybackEvent) -> None:
        self.session.add(entity)

    def query(
        self,
        *,
        cutoff: datetime | None = None,
        records: Collection[RecordRef] | None = None,
        users: Collection[str] | None = None,
        limit: int | None = None,
    ) -> list[PlaybackEvent]:
        columns = playback_event_table.c
        stmt = select(PlaybackEvent).order_by(columns.start_time.desc(), columns.id.desc())
        if cutoff is not None:
            stmt = stmt.where(columns.start_time >= cutoff)
        if users is not None:
            stmt = stmt.where(columns.user.in_(list(users)))
        if limit is not None:
            stmt = stmt.limit(limit)
        if records is None:
            return list(self.session.execute(stmt).scalars())

        refs = list(dict.fromkeys(records))
        events: dict[uuid.UUID, PlaybackEvent] = {}
        for start in range(0, len(refs), _RECORD_FILTER_CHUNK):
            chunk = refs[start : start + _RECORD_FILTER_CHUNK]
            chunk_stmt = stmt.where(
                or_(
                    *(
                        and_(
                            columns.server_id == ref.server_id,
                            columns.record_key == ref.record_key,
                        )
                        for ref in chunk
                    )
                )
            )
            for event in self.session.execute(chunk_stmt).scalars():
                events[event.id] = event
        ordered = sorted(events.values(), key=lambda e: (e.start_time, str(e.id)), reverse=True)
        return ordered if limit is None else ordered[:limit]


class SqlAlchemyReconciliationRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ReconciliationRun) -> None:
        self.session.add(entity)

    def get(self, run_id: uuid.UUID) -> ReconciliationRun | None:
        return self.session.get(ReconciliationRun, run_id)

    def list_running(self) -> list[ReconciliationRun]:
        stmt = (
            select(ReconciliationRun)
            .where(reconciliation_run_table.c.status == RunStatus.RUNNING)
            .order_by(reconciliation_run_table.c.started_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def list_recent(self, limit: int = 10) -> list[ReconciliationRun]:
        stmt = (
            select(ReconciliationRun)
            .order_by(reconciliation_run_table.c.started_at.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())


if TYPE_CHECKING:
    from mediaunion.domain.ports.persistence import (
        CanonicalIdentityRepository,
        GroupRepository,
        IdentityKeyRepository,
        PlaybackEventRepository,
        ReconciliationRunRepository,
        SourceRecordRepository,
    )

    _session_stub = cast("Session", object())
    _record_repo: SourceRecordRepository = SqlAlchemySourceRecordRepository(_session_stub)
    _identity_repo: CanonicalIdentityRepository = SqlAlchemyCanonicalIdentityRepository(
        _session_stub
    )
    _key_repo: IdentityKeyRepository = SqlAlchemyIdentityKeyRepository(_session_stub)
    _group_repo: GroupRepository = SqlAlchemyGroupRepository(_session_stub)
    _event_repo: PlaybackEventRepository = SqlAlchemyPlaybackEventRepository(_session_stub)
    _run_repo: ReconciliationRunRepository = SqlAlchemyReconciliationRunRepository(_session_stub)
