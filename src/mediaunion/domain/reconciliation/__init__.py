"""Guarded reconciliation runs and their live-update trigger."""

from __future__ import annotations

from .job import ReconciliationResult, reconcile, reconcile_catalog
from .run_lock import ReconciliationInProgressError, RunLock
from .trigger import ReconcileTrigger

__all__ = [
    "ReconcileTrigger",
    "ReconciliationInProgressError",
    "ReconciliationResult",
    "RunLock",
    "reconcile",
    "reconcile_catalog",
]
