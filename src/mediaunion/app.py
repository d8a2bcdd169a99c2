"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from mediaunion.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from mediaunion.config import get_reconciliation_config
from mediaunion.domain.aggregation import AggregationEngine, SortBy
from mediaunion.domain.groups import create_group, delete_group, list_groups, update_group
from mediaunion.domain.ports.unit_of_work import CatalogUnitOfWork
from mediaunion.domain.reconciliation import ReconcileTrigger, reconcile
from mediaunion.domain.time_windows import TimeRange

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from mediaunion.config import ReconciliationConfig
    from mediaunion.domain.aggregation import PopularItem, UserHistory
    from mediaunion.domain.model import Group, MediaType, RecordRef
    from mediaunion.domain.reconciliation import ReconciliationResult

UnitOfWorkFactory = Callable[[], CatalogUnitOfWork]


log = getLogger(__name__)


def _resolve_factory(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def reconcile_library(
    *,
    force_full_scan: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> ReconciliationResult:
    """Merge every source record into the canonical identity graph."""

    settings = config or get_reconciliation_config()
    log.info("Starting reconciliation: full_scan=%s", force_full_scan)
    return reconcile(
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        force_full_scan=force_full_scan,
        run_timeout=settings.run_timeout,
    )


def get_popular(
    time_range: TimeRange | str = TimeRange.DAY,
    *,
    media_type: MediaType | str | None = None,
    sort_by: SortBy | str = SortBy.UNIQUE_USERS,
    limit: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> list[PopularItem]:
    settings = config or get_reconciliation_config()
    with _resolve_factory(unit_of_work_factory)() as uow:
        engine = AggregationEngine(uow.repositories, max_events=settings.max_events)
        return engine.popular(
            time_range,
            media_type=media_type,
            sort_by=sort_by,
            limit=limit if limit is not None else settings.popular_limit,
        )


def get_item_history(
    ref: UUID | str,
    time_range: TimeRange | str = TimeRange.DAY,
    *,
    media_type: MediaType | str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> list[UserHistory]:
    settings = config or get_reconciliation_config()
    with _resolve_factory(unit_of_work_factory)() as uow:
        engine = AggregationEngine(uow.repositories, max_events=settings.max_events)
        return engine.item_history(ref, time_range, media_type=media_type)


def create_library_group(
    name: str,
    media_type: MediaType | str,
    members: Sequence[RecordRef],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Group:
    return create_group(
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        name=name,
        media_type=media_type,
        members=members,
    )


def update_library_group(
    group_id: UUID,
    *,
    name: str | None = None,
    members: Sequence[RecordRef] | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Group:
    return update_group(
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        group_id=group_id,
        name=name,
        members=members,
    )


def delete_library_group(
    group_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> int:
    return delete_group(
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        group_id=group_id,
    )


def list_library_groups(*, unit_of_work_factory: UnitOfWorkFactory | None = None) -> list[Group]:
    return list_groups(unit_of_work_factory=_resolve_factory(unit_of_work_factory))


def build_reconcile_trigger(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> ReconcileTrigger:
    """Return a debounced trigger that runs incremental reconciliations in the background."""

    settings = config or get_reconciliation_config()
    run = partial(
        reconcile,
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        force_full_scan=False,
        run_timeout=settings.run_timeout,
    )
    return ReconcileTrigger(run, cooldown_seconds=settings.trigger_cooldown_seconds)
