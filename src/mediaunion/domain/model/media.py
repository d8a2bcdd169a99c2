"""Per-server source records and the canonical identities they resolve to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

from mediaunion.domain.model.entity import Entity

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from mediaunion.domain.model.enums import MediaType


class RecordRef(NamedTuple):
    """Location of one record on one server."""

    server_id: str
    record_key: str


@dataclass(eq=False, kw_only=True)
class SourceRecord(Entity):
    """One server's copy of a media item.

    ``media_type`` is ``None`` when the server did not declare it. For episodes
    ``parent_record_key`` references the show record on the same server.
    ``raw_metadata`` holds the server's JSON payload verbatim.
    """

    server_id: str
    record_key: str
    title: str
    year: int | None = None
    media_type: MediaType | None = None
    parent_record_key: str | None = None
    raw_metadata: str | None = None
    linked_identity_id: UUID | None = None

    @property
    def ref(self) -> RecordRef:
        return RecordRef(self.server_id, self.record_key)


@dataclass(eq=False, kw_only=True)
class CanonicalIdentity(Entity):
    """A unified media title merged from one or more source records.

    Merges never delete rows: an absorbed identity keeps a pointer to its
    survivor and drops out of the live set.
    """

    primary_key: str
    title: str
    media_type: MediaType
    year: int | None = None
    poster_ref: str | None = None
    parent_identity_id: UUID | None = None
    merged_into_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.merged_into_id is None

    def missing_display_fields(
        self,
        *,
        title: str | None,
        year: int | None,
        poster_ref: str | None,
    ) -> dict[str, object]:
        """Return the display fields that are unset here and provided by the caller.

        First populated value wins: set fields are never overwritten.
        """
        updates: dict[str, object] = {}
        if not self.title and title:
            updates["title"] = title
        if self.year is None and year is not None:
            updates["year"] = year
        if not self.poster_ref and poster_ref:
            updates["poster_ref"] = poster_ref
        return updates


@dataclass(eq=False, kw_only=True)
class IdentityKey:
    """Persisted ownership of one match key."""

    key: str
    identity_id: UUID
