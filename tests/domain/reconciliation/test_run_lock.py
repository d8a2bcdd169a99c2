from __future__ import annotations

from datetime import timedelta

import pytest

from mediaunion.domain.model import ReconciliationRun, RunStatus
from mediaunion.domain.ports import PersistenceConflictError
from mediaunion.domain.reconciliation import (
    ReconciliationInProgressError,
    ReconciliationResult,
    RunLock,
    reconcile,
)
from mediaunion.domain.reconciliation.run_lock import ABANDONED_MESSAGE
from tests.helpers.catalog import DEFAULT_NOW, FakeCatalogUnitOfWork, FixedClock, make_record


def test_active_run_blocks_new_run(fake_uow: FakeCatalogUnitOfWork, clock: FixedClock) -> None:
    active = ReconciliationRun(started_at=DEFAULT_NOW - timedelta(minutes=5))
    fake_uow.runs.add(active)
    record = make_record("a", "1", "Inception", year=2010)
    fake_uow.add_records(record)

    with pytest.raises(ReconciliationInProgressError) as exc:
        reconcile(unit_of_work_factory=fake_uow, clock=clock)

    assert exc.value.run_id == active.id
    assert record.linked_identity_id is None
    assert len(fake_uow.runs.items) == 1


def test_stale_run_is_marked_failed(fake_uow: FakeCatalogUnitOfWork, clock: FixedClock) -> None:
    stale = ReconciliationRun(started_at=DEFAULT_NOW - timedelta(hours=2))
    fake_uow.runs.add(stale)
    lock = RunLock(fake_uow, timeout=timedelta(minutes=30), clock=clock)

    run_id = lock.acquire(force_full_scan=True)

    assert stale.status is RunStatus.FAILED
    assert stale.message == ABANDONED_MESSAGE
    (running,) = fake_uow.runs.list_running()
    assert running.id == run_id
    assert running.force_full_scan


def test_complete_and_fail_update_the_run(
    fake_uow: FakeCatalogUnitOfWork, clock: FixedClock
) -> None:
    lock = RunLock(fake_uow, clock=clock)
    completed_id = lock.acquire()
    lock.complete(completed_id, ReconciliationResult(created_count=3, merged_count=1))
    failed_id = lock.acquire()
    lock.fail(failed_id, "disk full")

    completed = fake_uow.runs.items[completed_id]
    failed = fake_uow.runs.items[failed_id]
    assert completed.status is RunStatus.COMPLETED
    assert (completed.created_count, completed.merged_count) == (3, 1)
    assert completed.finished_at is not None
    assert failed.status is RunStatus.FAILED
    assert failed.message == "disk full"
    assert fake_uow.runs.list_running() == []


class _ConflictingUnitOfWork(FakeCatalogUnitOfWork):
    """Another process commits its running row first; ours collides with it."""

    def __init__(self) -> None:
        super().__init__()
        self.rival = ReconciliationRun(started_at=DEFAULT_NOW)

    def commit(self) -> None:
        self.runs.items = {self.rival.id: self.rival}
        raise PersistenceConflictError("UNIQUE constraint failed: reconciliation_run.status")


def test_lost_commit_race_reports_the_winning_run(clock: FixedClock) -> None:
    uow = _ConflictingUnitOfWork()

    with pytest.raises(ReconciliationInProgressError) as exc:
        RunLock(uow, clock=clock).acquire()

    assert exc.value.run_id == uow.rival.id
    assert isinstance(exc.value.__cause__, PersistenceConflictError)
    assert uow.rollbacks == 1
