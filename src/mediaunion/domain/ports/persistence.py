"""Ports for persisting catalog aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from mediaunion.domain.model import (
    CanonicalIdentity,
    Group,
    PlaybackEvent,
    ReconciliationRun,
    SourceRecord,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping
    from datetime import datetime
    from uuid import UUID

    from mediaunion.domain.model import MediaType, RecordRef


class PersistenceConflictError(RuntimeError):
    """Raised on commit when a write collides with a uniqueness rule of the store."""


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class SourceRecordRepository(Repository[SourceRecord], Protocol):
    """Per-server records, unique by ``(server_id, record_key)``."""

    def get(self, server_id: str, record_key: str) -> SourceRecord | None: ...

    def list_all(self) -> list[SourceRecord]:
        """Return every record ordered by ``(server_id, record_key)``."""
        ...

    def linked_to(self, identity_id: UUID) -> list[SourceRecord]: ...

    def link(self, server_id: str, record_key: str, identity_id: UUID | None) -> None: ...


@runtime_checkable
class CanonicalIdentityRepository(Repository[CanonicalIdentity], Protocol):
    """Canonical identities, live and merged."""

    def get(self, identity_id: UUID) -> CanonicalIdentity | None: ...

    def list_all(self) -> list[CanonicalIdentity]: ...

    def create(
        self,
        *,
        primary_key: str,
        title: str,
        media_type: MediaType,
        year: int | None = None,
        poster_ref: str | None = None,
        created_at: datetime | None = None,
    ) -> CanonicalIdentity: ...

    def update(self, identity_id: UUID, **fields: object) -> None: ...

    def set_parent(self, identity_id: UUID, parent_id: UUID | None) -> None: ...

    def children_of(self, parent_id: UUID) -> list[CanonicalIdentity]: ...

    def merged_into(self, survivor_id: UUID) -> list[CanonicalIdentity]: ...

    def delete(self, identity_id: UUID) -> None: ...


@runtime_checkable
class IdentityKeyRepository(Protocol):
    """Persisted ``key -> identity`` ownership, one owner per key."""

    def all(self) -> Mapping[str, UUID]: ...

    def keys_of(self, identity_id: UUID) -> list[str]: ...

    def assign(self, key: str, identity_id: UUID) -> None: ...

    def remove(self, key: str) -> None: ...


@runtime_checkable
class GroupRepository(Repository[Group], Protocol):
    def get(self, group_id: UUID) -> Group | None: ...

    def list_all(self) -> list[Group]: ...

    def delete(self, group: Group) -> None: ...


@runtime_checkable
class PlaybackEventRepository(Repository[PlaybackEvent], Protocol):
    """Append-only playback history."""

    def query(
        self,
        *,
        cutoff: datetime | None = None,
        records: Collection[RecordRef] | None = None,
        users: Collection[str] | None = None,
        limit: int | None = None,
    ) -> list[PlaybackEvent]:
        """Return events at or after ``cutoff``, newest first."""
        ...


@runtime_checkable
class ReconciliationRunRepository(Repository[ReconciliationRun], Protocol):
    def get(self, run_id: UUID) -> ReconciliationRun | None: ...

    def list_running(self) -> list[ReconciliationRun]: ...

    def list_recent(self, limit: int = 10) -> list[ReconciliationRun]: ...
