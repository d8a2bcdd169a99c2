"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    CanonicalIdentityRepository,
    GroupRepository,
    IdentityKeyRepository,
    PersistenceConflictError,
    PlaybackEventRepository,
    ReconciliationRunRepository,
    Repository,
    SourceRecordRepository,
)
from .unit_of_work import (
    CatalogRepositories,
    CatalogUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "CanonicalIdentityRepository",
    "CatalogRepositories",
    "CatalogUnitOfWork",
    "GroupRepository",
    "IdentityKeyRepository",
    "PersistenceConflictError",
    "PlaybackEventRepository",
    "ReconciliationRunRepository",
    "Repository",
    "RepositoryCollection",
    "SourceRecordRepository",
    "UnitOfWork",
]
