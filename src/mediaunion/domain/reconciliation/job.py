"""Reconciliation of every source record onto the canonical identity graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mediaunion.domain.identity import (
    GroupIndex,
    IdentityResolver,
    extract_features,
    link_hierarchy,
    match_keys,
)
from mediaunion.domain.reconciliation.run_lock import DEFAULT_RUN_TIMEOUT, RunLock
from mediaunion.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import timedelta

    from mediaunion.domain.ports import CatalogUnitOfWork
    from mediaunion.domain.time_windows import Clock

log = logging.getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class ReconciliationResult:
    """Counts reported by one reconciliation run."""

    created_count: int = 0
    matched_count: int = 0
    linked_count: int = 0
    hierarchy_link_count: int = 0
    merged_count: int = 0


def reconcile(
    *,
    unit_of_work_factory: Callable[[], CatalogUnitOfWork],
    force_full_scan: bool = False,
    run_timeout: timedelta = DEFAULT_RUN_TIMEOUT,
    clock: Clock = utcnow,
) -> ReconciliationResult:
    """Run one guarded reconciliation pass.

    Raises ``ReconciliationInProgressError`` when another run is active. Any
    other failure marks the run failed and propagates.
    """

    lock = RunLock(unit_of_work_factory, timeout=run_timeout, clock=clock)
    run_id = lock.acquire(force_full_scan=force_full_scan)
    try:
        result = reconcile_catalog(
            unit_of_work_factory=unit_of_work_factory,
            force_full_scan=force_full_scan,
            clock=clock,
        )
    except Exception as exc:
        log.error("Reconciliation run %s failed: %s", run_id, exc)
        lock.fail(run_id, str(exc) or type(exc).__name__)
        raise
    lock.complete(run_id, result)
    log.info(
        "Finished reconciliation run %s: created=%d matched=%d linked=%d "
        "hierarchy_links=%d merged=%d",
        run_id,
        result.created_count,
        result.matched_count,
        result.linked_count,
        result.hierarchy_link_count,
        result.merged_count,
    )
    return result


def reconcile_catalog(
    *,
    unit_of_work_factory: Callable[[], CatalogUnitOfWork],
    force_full_scan: bool = False,
    clock: Clock = utcnow,
) -> ReconciliationResult:
    """Resolve records and link the hierarchy inside a single unit of work.

    Without ``force_full_scan`` only records that are unlinked, or linked to an
    identity that is no longer live, are resolved; the key context is always
    loaded in full.
    """

    result = ReconciliationResult()
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        groups = GroupIndex(repositories.groups.list_all())
        records = sorted(
            repositories.source_records.list_all(),
            key=lambda record: (record.server_id, record.record_key),
        )
        live_ids = {
            identity.id for identity in repositories.identities.list_all() if identity.is_live
        }
        resolver = IdentityResolver.seeded(repositories, clock=clock)

        features = {record.ref: extract_features(record) for record in records}
        pending = [
            record
            for record in records
            if force_full_scan or record.linked_identity_id not in live_ids
        ]
        log.info(
            "Reconciling %d of %d records against %d identities (%d groups)",
            len(pending),
            len(records),
            len(live_ids),
            len(groups),
        )

        for record in pending:
            record_features = features[record.ref]
            keys = match_keys(record, record_features, groups)
            outcome = resolver.resolve(record, record_features, keys)
            if outcome.created:
                result.created_count += 1
            else:
                result.matched_count += 1
            result.linked_count += int(outcome.linked) + outcome.relinked_records
            result.merged_count += len(outcome.absorbed)

        result.hierarchy_link_count = link_hierarchy(repositories, records, features)
        uow.commit()
    return result
