"""
Base building blocks:
identity semantics shared by every persisted entity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class Entity:
    """Internal identity exists immediately in the domain."""

    id: UUID = field(default_factory=new_id)

    def same_as(self, other: Entity) -> bool:
        """Compare by explicit identifier, never by object identity."""
        return self.id == other.id
