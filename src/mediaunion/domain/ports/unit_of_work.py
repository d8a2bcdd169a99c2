"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from mediaunion.domain.ports.persistence import (
        CanonicalIdentityRepository,
        GroupRepository,
        IdentityKeyRepository,
        PlaybackEventRepository,
        ReconciliationRunRepository,
        SourceRecordRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class CatalogRepositories(RepositoryCollection):
    """Repositories backing reconciliation, statistics and group administration."""

    source_records: SourceRecordRepository
    identities: CanonicalIdentityRepository
    identity_keys: IdentityKeyRepository
    groups: GroupRepository
    playback_events: PlaybackEventRepository
    runs: ReconciliationRunRepository


type CatalogUnitOfWork = UnitOfWork[CatalogRepositories]
