from __future__ import annotations

from uuid import uuid4

import pytest

from mediaunion.domain.groups import (
    GroupNotFoundError,
    create_group,
    delete_group,
    list_groups,
    update_group,
)
from mediaunion.domain.identity.keys import group_key
from mediaunion.domain.model import MediaType, RecordRef
from mediaunion.domain.reconciliation import reconcile
from tests.helpers.catalog import FakeCatalogUnitOfWork, FixedClock, make_record


@pytest.fixture
def office(fake_uow: FakeCatalogUnitOfWork, clock: FixedClock) -> FakeCatalogUnitOfWork:
    fake_uow.add_records(
        make_record("a", "10", "The Office", year=2005, media_type=MediaType.SHOW),
        make_record(
            "a",
            "11",
            "Pilot",
            media_type=MediaType.EPISODE,
            parent_record_key="10",
            metadata={"grandparentTitle": "The Office", "parentIndex": 1, "index": 1},
        ),
        make_record("b", "20", "The Office (US)", year=2005, media_type=MediaType.SHOW),
        make_record(
            "b",
            "21",
            "Pilot",
            media_type=MediaType.EPISODE,
            parent_record_key="20",
            metadata={"grandparentTitle": "The Office (US)", "parentIndex": 1, "index": 1},
        ),
    )
    reconcile(unit_of_work_factory=fake_uow, clock=clock)
    return fake_uow


def test_create_group_validates_input(fake_uow: FakeCatalogUnitOfWork) -> None:
    with pytest.raises(ValueError, match="blank"):
        create_group(unit_of_work_factory=fake_uow, name="  ", media_type="movie")
    with pytest.raises(ValueError, match="movies and shows"):
        create_group(unit_of_work_factory=fake_uow, name="Pilots", media_type="episode")
    with pytest.raises(ValueError):
        create_group(unit_of_work_factory=fake_uow, name="Odd", media_type="album")


def test_create_group_detaches_members_and_their_episodes(
    office: FakeCatalogUnitOfWork, clock: FixedClock
) -> None:
    records = office.source_records
    assert all(record.linked_identity_id is not None for record in records.list_all())

    group = create_group(
        unit_of_work_factory=office,
        name=" The Office ",
        media_type=MediaType.SHOW,
        members=[RecordRef("a", "10"), RecordRef("b", "20")],
        clock=clock,
    )

    assert group.name == "The Office"
    assert group.member_refs() == [RecordRef("a", "10"), RecordRef("b", "20")]
    assert all(record.linked_identity_id is None for record in records.list_all())
    assert list_groups(unit_of_work_factory=office) == [group]


def test_grouped_shows_share_identity_and_episode_keys(
    office: FakeCatalogUnitOfWork, clock: FixedClock
) -> None:
    group = create_group(
        unit_of_work_factory=office,
        name="The Office",
        media_type=MediaType.SHOW,
        members=[RecordRef("a", "10"), RecordRef("b", "20")],
        clock=clock,
    )

    result = reconcile(unit_of_work_factory=office, clock=clock)

    records = {record.ref: record for record in office.source_records.list_all()}
    show_identity = records[RecordRef("a", "10")].linked_identity_id
    episode_identity = records[RecordRef("a", "11")].linked_identity_id
    assert records[RecordRef("b", "20")].linked_identity_id == show_identity
    assert records[RecordRef("b", "21")].linked_identity_id == episode_identity
    assert office.identity_keys.all()[f"{group_key(group.id)}:s1:e1"] == episode_identity
    assert episode_identity is not None
    assert office.identities.items[episode_identity].parent_identity_id == show_identity
    assert result.hierarchy_link_count == 1


def test_update_group_renames_and_detaches_changed_members(
    office: FakeCatalogUnitOfWork, clock: FixedClock
) -> None:
    group = create_group(
        unit_of_work_factory=office,
        name="The Office",
        media_type=MediaType.SHOW,
        members=[RecordRef("a", "10")],
        clock=clock,
    )
    reconcile(unit_of_work_factory=office, clock=clock)
    kept = office.source_records.get("a", "10")
    assert kept is not None
    linked_before = kept.linked_identity_id

    updated = update_group(
        unit_of_work_factory=office,
        group_id=group.id,
        name="Office",
        members=[RecordRef("a", "10"), RecordRef("b", "20")],
    )

    assert updated.name == "Office"
    assert kept.linked_identity_id == linked_before
    added = office.source_records.get("b", "20")
    assert added is not None
    assert added.linked_identity_id is None


def test_update_missing_group_raises(fake_uow: FakeCatalogUnitOfWork) -> None:
    with pytest.raises(GroupNotFoundError):
        update_group(unit_of_work_factory=fake_uow, group_id=uuid4(), name="x")


def test_delete_group_removes_its_identities(
    office: FakeCatalogUnitOfWork, clock: FixedClock
) -> None:
    group = create_group(
        unit_of_work_factory=office,
        name="The Office",
        media_type=MediaType.SHOW,
        members=[RecordRef("a", "10"), RecordRef("b", "20")],
        clock=clock,
    )
    reconcile(unit_of_work_factory=office, clock=clock)
    group_identities = {
        identity_id
        for key, identity_id in office.identity_keys.all().items()
        if key.startswith(group_key(group.id))
    }

    removed = delete_group(unit_of_work_factory=office, group_id=group.id)

    assert removed == len(group_identities) == 2
    assert office.groups.list_all() == []
    assert not any(key.startswith("group:") for key in office.identity_keys.all())
    assert all(identity_id not in office.identities.items for identity_id in group_identities)
    assert all(record.linked_identity_id is None for record in office.source_records.list_all())

    result = reconcile(unit_of_work_factory=office, clock=clock)
    assert result.created_count == 0
    assert result.matched_count == 4
    with pytest.raises(GroupNotFoundError):
        delete_group(unit_of_work_factory=office, group_id=group.id)
