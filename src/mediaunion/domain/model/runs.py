"""Run-status records used to keep reconciliation runs mutually exclusive."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from mediaunion.domain.model.entity import Entity
from mediaunion.domain.model.enums import RunStatus

if TYPE_CHECKING:
    from datetime import datetime, timedelta


@dataclass(eq=False, kw_only=True)
class ReconciliationRun(Entity):
    started_at: datetime
    force_full_scan: bool = False
    status: RunStatus = RunStatus.RUNNING
    finished_at: datetime | None = None
    message: str | None = None
    created_count: int = 0
    matched_count: int = 0
    linked_count: int = 0
    hierarchy_link_count: int = 0
    merged_count: int = 0

    @property
    def is_running(self) -> bool:
        return self.status is RunStatus.RUNNING

    def is_stale(self, now: datetime, timeout: timedelta) -> bool:
        return self.is_running and now - self.started_at > timeout

    def complete(
        self,
        *,
        at: datetime,
        created: int,
        matched: int,
        linked: int,
        hierarchy_links: int,
        merged: int,
    ) -> None:
        self.status = RunStatus.COMPLETED
        self.finished_at = at
        self.created_count = created
        self.matched_count = matched
        self.linked_count = linked
        self.hierarchy_link_count = hierarchy_links
        self.merged_count = merged

    def fail(self, *, at: datetime, message: str) -> None:
        self.status = RunStatus.FAILED
        self.finished_at = at
        self.message = message
