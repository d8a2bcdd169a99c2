"""Apply key-index outcomes to the persisted identity graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from mediaunion.domain.identity.key_index import KeyIndex
from mediaunion.domain.time_windows import ensure_aware, utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from mediaunion.domain.identity.extract import IdentityFeatures
    from mediaunion.domain.model import CanonicalIdentity, SourceRecord
    from mediaunion.domain.ports import CanonicalIdentityRepository, CatalogRepositories
    from mediaunion.domain.time_windows import Clock

log = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(slots=True, kw_only=True)
class ResolveOutcome:
    """What resolving one record changed."""

    identity_id: UUID
    created: bool = False
    linked: bool = False
    absorbed: tuple[UUID, ...] = ()
    relinked_records: int = 0

    @property
    def matched(self) -> bool:
        return not self.created


def identity_rank(identity: CanonicalIdentity) -> tuple[datetime, str]:
    """Survivor ordering for persisted identities: oldest first, id as tie-breaker."""
    created = ensure_aware(identity.created_at) if identity.created_at else _EPOCH
    return created, str(identity.id)


def follow_merges(
    identities: CanonicalIdentityRepository,
    identity_id: UUID | None,
) -> CanonicalIdentity | None:
    """Return the live identity ``identity_id`` resolves to, if it still exists."""

    if identity_id is None:
        return None
    seen: set[UUID] = set()
    current = identities.get(identity_id)
    while current is not None and current.merged_into_id is not None:
        if current.id in seen:
            log.warning("Merge pointer cycle detected at identity %s", current.id)
            return None
        seen.add(current.id)
        current = identities.get(current.merged_into_id)
    return current


def _live_owner(by_id: Mapping[UUID, CanonicalIdentity], identity_id: UUID) -> UUID | None:
    seen: set[UUID] = set()
    current = by_id.get(identity_id)
    while current is not None and current.merged_into_id is not None and current.id not in seen:
        seen.add(current.id)
        current = by_id.get(current.merged_into_id)
    if current is None or not current.is_live:
        return None
    return current.id


def seed_key_index(repositories: CatalogRepositories) -> KeyIndex[UUID]:
    """Build a key index from the persisted identities and key table."""

    identities = repositories.identities.list_all()
    by_id = {identity.id: identity for identity in identities}
    live = sorted((identity for identity in identities if identity.is_live), key=identity_rank)
    keys_by_owner: dict[UUID, list[str]] = {identity.id: [] for identity in live}

    for key, owner_id in sorted(repositories.identity_keys.all().items()):
        live_id = _live_owner(by_id, owner_id)
        if live_id is None:
            log.debug("Skipping key %s owned by missing identity %s", key, owner_id)
            continue
        keys_by_owner[live_id].append(key)

    index = KeyIndex[UUID]()
    for identity in live:
        index.seed(identity.id, keys_by_owner[identity.id])
    return index


class IdentityResolver:
    """Resolve records onto canonical identities through a shared key index."""

    def __init__(
        self,
        repositories: CatalogRepositories,
        *,
        index: KeyIndex[UUID] | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._repositories = repositories
        self._index = index if index is not None else KeyIndex[UUID]()
        self._clock = clock

    @classmethod
    def seeded(
        cls, repositories: CatalogRepositories, *, clock: Clock = utcnow
    ) -> IdentityResolver:
        return cls(repositories, index=seed_key_index(repositories), clock=clock)

    @property
    def index(self) -> KeyIndex[UUID]:
        return self._index

    def resolve(
        self,
        record: SourceRecord,
        features: IdentityFeatures,
        keys: Sequence[str],
    ) -> ResolveOutcome:
        if not keys:
            raise ValueError(f"record {record.record_key}@{record.server_id} has no match keys")

        attachment = self._index.attach(keys, create=lambda: self._create(features, keys[0]))
        identity_id = attachment.owner

        relinked = sum(self._absorb(loser, into=identity_id) for loser in attachment.absorbed)
        for key in attachment.claimed_keys:
            self._repositories.identity_keys.assign(key, identity_id)
        if not attachment.created:
            self._fill_display_fields(identity_id, features)

        linked = record.linked_identity_id != identity_id
        if linked:
            self._repositories.source_records.link(record.server_id, record.record_key, identity_id)

        return ResolveOutcome(
            identity_id=identity_id,
            created=attachment.created,
            linked=linked,
            absorbed=attachment.absorbed,
            relinked_records=relinked,
        )

    def _create(self, features: IdentityFeatures, primary_key: str) -> UUID:
        identity = self._repositories.identities.create(
            primary_key=primary_key,
            title=features.display_title,
            media_type=features.media_type,
            year=features.year,
            poster_ref=features.poster_ref,
            created_at=self._clock(),
        )
        log.debug("Created identity %s for key %s", identity.id, primary_key)
        return identity.id

    def _fill_display_fields(self, identity_id: UUID, features: IdentityFeatures) -> None:
        identity = self._repositories.identities.get(identity_id)
        if identity is None:
            return
        updates = identity.missing_display_fields(
            title=features.display_title,
            year=features.year,
            poster_ref=features.poster_ref,
        )
        if updates:
            self._repositories.identities.update(identity_id, updated_at=self._clock(), **updates)

    def _absorb(self, loser_id: UUID, *, into: UUID) -> int:
        """Fold ``loser_id`` into ``into`` and return how many records were re-linked."""

        repositories = self._repositories
        identities = repositories.identities
        loser = identities.get(loser_id)
        survivor = identities.get(into)
        if loser is None or survivor is None:
            raise LookupError(f"cannot merge identity {loser_id} into {into}: identity missing")

        relinked = 0
        for record in repositories.source_records.linked_to(loser_id):
            repositories.source_records.link(record.server_id, record.record_key, into)
            relinked += 1
        for child in identities.children_of(loser_id):
            identities.set_parent(child.id, None if child.id == into else into)
        for previous in identities.merged_into(loser_id):
            identities.update(previous.id, merged_into_id=into)

        now = self._clock()
        updates = survivor.missing_display_fields(
            title=loser.title,
            year=loser.year,
            poster_ref=loser.poster_ref,
        )
        if survivor.parent_identity_id is None and loser.parent_identity_id not in (None, into):
            updates["parent_identity_id"] = loser.parent_identity_id
        if updates:
            identities.update(into, updated_at=now, **updates)
        identities.update(loser_id, merged_into_id=into, parent_identity_id=None, updated_at=now)

        log.info("Merged identity %s into %s (%d records re-linked)", loser_id, into, relinked)
        return relinked
