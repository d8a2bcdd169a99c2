"""Episode -> show parent linking, independent of record processing order."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mediaunion.domain.identity.resolve import follow_merges
from mediaunion.domain.model import MediaType, RecordRef

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from mediaunion.domain.identity.extract import IdentityFeatures
    from mediaunion.domain.model import SourceRecord
    from mediaunion.domain.ports import CatalogRepositories

log = logging.getLogger(__name__)


def link_hierarchy(
    repositories: CatalogRepositories,
    records: Sequence[SourceRecord],
    features: Mapping[RecordRef, IdentityFeatures],
) -> int:
    """Point episode identities at their show identity; return how many parents changed.

    Runs after every record is resolved. An episode whose show record or
    identity cannot be found yet is left alone for the next run.
    """

    by_ref = {record.ref: record for record in records}
    identities = repositories.identities
    changed = 0

    for record in records:
        record_features = features.get(record.ref)
        if record_features is None or record_features.media_type is not MediaType.EPISODE:
            continue
        if record_features.show_record_key is None:
            continue
        show_record = by_ref.get(RecordRef(record.server_id, record_features.show_record_key))
        if show_record is None:
            log.debug(
                "Show record %s missing for episode %s",
                record_features.show_record_key,
                record.ref,
            )
            continue

        episode_identity = follow_merges(identities, record.linked_identity_id)
        show_identity = follow_merges(identities, show_record.linked_identity_id)
        if episode_identity is None or show_identity is None:
            continue
        if show_identity.media_type is not MediaType.SHOW:
            continue
        if episode_identity.same_as(show_identity):
            continue
        if episode_identity.parent_identity_id == show_identity.id:
            continue

        identities.set_parent(episode_identity.id, show_identity.id)
        changed += 1

    return changed
