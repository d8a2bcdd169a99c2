"""Administrator-defined groups that force records onto one identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mediaunion.domain.model.entity import Entity
from mediaunion.domain.model.media import RecordRef

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from mediaunion.domain.model.enums import MediaType


@dataclass(eq=False, kw_only=True)
class GroupMember:
    server_id: str
    record_key: str
    position: int = 0

    @property
    def ref(self) -> RecordRef:
        return RecordRef(self.server_id, self.record_key)


@dataclass(eq=False, kw_only=True)
class Group(Entity):
    """Named, ordered set of records that always resolve to one identity.

    Only movies and shows are grouped directly. Episodes follow their show.
    """

    name: str
    media_type: MediaType
    created_at: datetime | None = None
    members: list[GroupMember] = field(default_factory=list["GroupMember"])

    def member_refs(self) -> list[RecordRef]:
        return [member.ref for member in sorted(self.members, key=lambda m: m.position)]

    def replace_members(self, refs: Iterable[RecordRef]) -> None:
        """Replace the member list, keeping first-seen order and dropping duplicates."""
        ordered: list[RecordRef] = []
        for ref in refs:
            normalized = RecordRef(*ref)
            if normalized not in ordered:
                ordered.append(normalized)
        existing = {member.ref: member for member in self.members}
        kept: list[GroupMember] = []
        for index, ref in enumerate(ordered):
            member = existing.get(ref)
            if member is None:
                member = GroupMember(server_id=ref.server_id, record_key=ref.record_key)
            member.position = index
            kept.append(member)
        # Surviving members keep their instance and therefore their row.
        self.members[:] = kept
