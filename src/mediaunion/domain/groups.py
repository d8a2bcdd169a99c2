"""Administration of groups that pin records to one identity."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mediaunion.domain.identity import extract_features
from mediaunion.domain.identity.keys import group_key
from mediaunion.domain.model import Group, MediaType, RecordRef
from mediaunion.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from uuid import UUID

    from mediaunion.domain.ports import CatalogRepositories, CatalogUnitOfWork
    from mediaunion.domain.time_windows import Clock

log = logging.getLogger(__name__)

GROUPABLE_TYPES = frozenset({MediaType.MOVIE, MediaType.SHOW})


class GroupNotFoundError(LookupError):
    def __init__(self, group_id: UUID) -> None:
        self.group_id = group_id
        super().__init__(f"Group {group_id} does not exist")


def _validated_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Group name must not be blank")
    return cleaned


def _validated_type(media_type: MediaType | str) -> MediaType:
    resolved = MediaType(media_type)
    if resolved not in GROUPABLE_TYPES:
        raise ValueError(f"Only movies and shows can be grouped, got {resolved.value!r}")
    return resolved


def _detach_affected(repositories: CatalogRepositories, refs: Iterable[RecordRef]) -> int:
    """Unlink member records and their episodes so the next run re-resolves them."""

    affected = set(refs)
    if not affected:
        return 0
    detached = 0
    for record in repositories.source_records.list_all():
        if record.ref not in affected:
            features = extract_features(record)
            if features.media_type is not MediaType.EPISODE or features.show_record_key is None:
                continue
            if RecordRef(record.server_id, features.show_record_key) not in affected:
                continue
        if record.linked_identity_id is not None:
            repositories.source_records.link(record.server_id, record.record_key, None)
            detached += 1
    return detached


def create_group(
    *,
    unit_of_work_factory: Callable[[], CatalogUnitOfWork],
    name: str,
    media_type: MediaType | str,
    members: Sequence[RecordRef] = (),
    clock: Clock = utcnow,
) -> Group:
    group = Group(name=_validated_name(name), media_type=_validated_type(media_type))
    group.created_at = clock()
    group.replace_members(members)
    with unit_of_work_factory() as uow:
        uow.repositories.groups.add(group)
        detached = _detach_affected(uow.repositories, group.member_refs())
        uow.commit()
    log.info("Created group %s (%s) with %d members", group.id, group.name, len(group.members))
    log.debug("Detached %d records for re-resolution", detached)
    return group


def update_group(
    *,
    unit_of_work_factory: Callable[[], CatalogUnitOfWork],
    group_id: UUID,
    name: str | None = None,
    members: Sequence[RecordRef] | None = None,
) -> Group:
    """Rename a group and/or replace its member list."""

    with unit_of_work_factory() as uow:
        group = uow.repositories.groups.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        if name is not None:
            group.name = _validated_name(name)
        if members is not None:
            previous = set(group.member_refs())
            group.replace_members(members)
            changed = previous.symmetric_difference(group.member_refs())
            _detach_affected(uow.repositories, changed)
        uow.commit()
    log.info("Updated group %s (%s)", group.id, group.name)
    return group


def delete_group(
    *,
    unit_of_work_factory: Callable[[], CatalogUnitOfWork],
    group_id: UUID,
) -> int:
    """Delete a group together with the identities its keys own.

    Records linked to those identities are detached, child episodes lose their
    parent pointer and the group keys are dropped. Returns the number of
    identities removed.
    """

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        group = repositories.groups.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)

        own_key = group_key(group.id)
        owners = {
            identity_id
            for key, identity_id in repositories.identity_keys.all().items()
            if key == own_key or key.startswith(f"{own_key}:")
        }
        doomed: dict[UUID, None] = {}
        for identity_id in sorted(owners, key=str):
            # absorbed identities reference their survivor and go first
            for absorbed in repositories.identities.merged_into(identity_id):
                doomed.setdefault(absorbed.id)
            doomed.setdefault(identity_id)

        for identity_id in doomed:
            _remove_identity(repositories, identity_id)
        _detach_affected(repositories, group.member_refs())
        repositories.groups.delete(group)
        uow.commit()

    log.info("Deleted group %s and %d identities", group_id, len(doomed))
    return len(doomed)


def _remove_identity(repositories: CatalogRepositories, identity_id: UUID) -> None:
    for record in repositories.source_records.linked_to(identity_id):
        repositories.source_records.link(record.server_id, record.record_key, None)
    for child in repositories.identities.children_of(identity_id):
        repositories.identities.set_parent(child.id, None)
    for key in repositories.identity_keys.keys_of(identity_id):
        repositories.identity_keys.remove(key)
    repositories.identities.delete(identity_id)


def list_groups(*, unit_of_work_factory: Callable[[], CatalogUnitOfWork]) -> list[Group]:
    with unit_of_work_factory() as uow:
        return uow.repositories.groups.list_all()
