"""Mutual exclusion of reconciliation runs through the run-status table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from mediaunion.domain.model import ReconciliationRun
from mediaunion.domain.ports import PersistenceConflictError
from mediaunion.domain.time_windows import ensure_aware, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from mediaunion.domain.ports import CatalogUnitOfWork
    from mediaunion.domain.reconciliation.job import ReconciliationResult
    from mediaunion.domain.time_windows import Clock

log = logging.getLogger(__name__)

DEFAULT_RUN_TIMEOUT = timedelta(minutes=30)
ABANDONED_MESSAGE = "abandoned: run exceeded its timeout"


class ReconciliationInProgressError(RuntimeError):
    """Raised when another reconciliation run is still active."""

    def __init__(self, run: ReconciliationRun | None) -> None:
        self.run_id = run.id if run is not None else None
        self.started_at = run.started_at if run is not None else None
        if run is None:
            super().__init__("Another reconciliation run was started concurrently")
        else:
            super().__init__(f"Reconciliation run {run.id} is in progress since {run.started_at}")


@dataclass(slots=True)
class RunLock:
    """Acquire and release a ``running`` run-status row.

    A ``running`` row older than ``timeout`` belongs to a crashed process and is
    marked failed before a new run starts. The store admits a single ``running``
    row, so two processes racing past the check cannot both start.
    """

    unit_of_work_factory: Callable[[], CatalogUnitOfWork]
    timeout: timedelta = DEFAULT_RUN_TIMEOUT
    clock: Clock = utcnow

    def acquire(self, *, force_full_scan: bool = False) -> UUID:
        now = self.clock()
        with self.unit_of_work_factory() as uow:
            runs = uow.repositories.runs
            for active in runs.list_running():
                if now - ensure_aware(active.started_at) <= self.timeout:
                    raise ReconciliationInProgressError(active)
                log.warning(
                    "Marking stale run %s (started %s) as failed", active.id, active.started_at
                )
                active.fail(at=now, message=ABANDONED_MESSAGE)

            run = ReconciliationRun(started_at=now, force_full_scan=force_full_scan)
            runs.add(run)
            try:
                uow.commit()
            except PersistenceConflictError as exc:
                winner = next(iter(runs.list_running()), None)
                log.info("Lost the race for the run lock to %s", winner.id if winner else "?")
                raise ReconciliationInProgressError(winner) from exc
        log.info("Started reconciliation run %s (full_scan=%s)", run.id, force_full_scan)
        return run.id

    def complete(self, run_id: UUID, result: ReconciliationResult) -> None:
        with self.unit_of_work_factory() as uow:
            run = uow.repositories.runs.get(run_id)
            if run is None:
                log.warning("Run %s vanished before completion", run_id)
                return
            run.complete(
                at=self.clock(),
                created=result.created_count,
                matched=result.matched_count,
                linked=result.linked_count,
                hierarchy_links=result.hierarchy_link_count,
                merged=result.merged_count,
            )
            uow.commit()

    def fail(self, run_id: UUID, message: str) -> None:
        with self.unit_of_work_factory() as uow:
            run = uow.repositories.runs.get(run_id)
            if run is None:
                log.warning("Run %s vanished before it could be marked failed", run_id)
                return
            run.fail(at=self.clock(), message=message)
            uow.commit()
