"""SQLAlchemy adapter package for mediaunion."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCanonicalIdentityRepository,
    SqlAlchemyGroupRepository,
    SqlAlchemyIdentityKeyRepository,
    SqlAlchemyPlaybackEventRepository,
    SqlAlchemyReconciliationRunRepository,
    SqlAlchemySourceRecordRepository,
)
from .unit_of_work import SqlAlchemyUnitOfWork, StartupError, shutdown, startup

__all__ = [
    "SqlAlchemyCanonicalIdentityRepository",
    "SqlAlchemyGroupRepository",
    "SqlAlchemyIdentityKeyRepository",
    "SqlAlchemyPlaybackEventRepository",
    "SqlAlchemyReconciliationRunRepository",
    "SqlAlchemySourceRecordRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "startup",
    "start_mappers",
]
