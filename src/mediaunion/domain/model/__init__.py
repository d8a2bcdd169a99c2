"""Public domain model surface."""

from __future__ import annotations

from mediaunion.domain.model.entity import Entity, new_id
from mediaunion.domain.model.enums import ExternalNamespace, MediaType, RunStatus
from mediaunion.domain.model.groups import Group, GroupMember
from mediaunion.domain.model.media import CanonicalIdentity, IdentityKey, RecordRef, SourceRecord
from mediaunion.domain.model.playback import PlaybackEvent
from mediaunion.domain.model.runs import ReconciliationRun

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    # enums
    "ExternalNamespace",
    "MediaType",
    "RunStatus",
    # catalog
    "RecordRef",
    "SourceRecord",
    "CanonicalIdentity",
    "IdentityKey",
    # groups
    "Group",
    "GroupMember",
    # history
    "PlaybackEvent",
    "ReconciliationRun",
]
