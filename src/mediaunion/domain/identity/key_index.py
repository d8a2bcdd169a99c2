"""Per-run key ownership index implementing the union-merge rule.

Responsibilities:
- map every match key to exactly one owner
- merge owners whose key sets overlap, keeping the earliest-ranked owner
- stay free of persistence so statistics can reuse it for clustering
"""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator


@dataclass(slots=True, kw_only=True)
class Attachment[TOwner]:
    """Outcome of attaching one key set to the index."""

    owner: TOwner
    created: bool = False
    absorbed: tuple[TOwner, ...] = ()
    # Keys whose owner became ``owner`` during this attach.
    claimed_keys: tuple[str, ...] = ()


class KeyIndex[TOwner: Hashable]:
    """``key -> owner`` mapping with a deterministic survivor rule.

    Owners are ranked in the order they were seeded or created; when a key set
    reaches several owners the lowest rank survives and absorbs the others.
    """

    def __init__(self) -> None:
        self._owner_by_key: dict[str, TOwner] = {}
        self._keys_by_owner: dict[TOwner, list[str]] = {}
        self._rank_by_owner: dict[TOwner, int] = {}
        self._next_rank = 0

    def __len__(self) -> int:
        return len(self._keys_by_owner)

    def __contains__(self, owner: object) -> bool:
        return owner in self._keys_by_owner

    def owners(self) -> Iterator[TOwner]:
        """Yield live owners in rank order."""
        return iter(sorted(self._keys_by_owner, key=self._rank_by_owner.__getitem__))

    def owner_of(self, key: str) -> TOwner | None:
        return self._owner_by_key.get(key)

    def keys_of(self, owner: TOwner) -> tuple[str, ...]:
        return tuple(self._keys_by_owner.get(owner, ()))

    def seed(self, owner: TOwner, keys: Iterable[str] = ()) -> None:
        """Register an existing owner (next rank) and the keys it already holds.

        Keys that already have a different owner keep it.
        """

        self._register_owner(owner)
        for key in keys:
            if key not in self._owner_by_key:
                self._claim(key, owner)

    def attach(self, keys: Iterable[str], create: Callable[[], TOwner]) -> Attachment[TOwner]:
        """Attach ``keys`` to their owner, creating or merging owners as needed."""

        ordered_keys = tuple(dict.fromkeys(keys))
        owners: list[TOwner] = []
        for key in ordered_keys:
            owner = self._owner_by_key.get(key)
            if owner is not None and owner not in owners:
                owners.append(owner)

        if not owners:
            owner = create()
            self._register_owner(owner)
            claimed = [self._claim(key, owner) for key in ordered_keys]
            return Attachment(owner=owner, created=True, claimed_keys=tuple(claimed))

        survivor = min(owners, key=self._rank_by_owner.__getitem__)
        absorbed = tuple(owner for owner in owners if owner != survivor)
        claimed: list[str] = []
        for loser in absorbed:
            claimed.extend(self._absorb(loser, into=survivor))
        claimed.extend(
            self._claim(key, survivor) for key in ordered_keys if key not in self._owner_by_key
        )
        return Attachment(owner=survivor, absorbed=absorbed, claimed_keys=tuple(claimed))

    def _register_owner(self, owner: TOwner) -> None:
        if owner in self._rank_by_owner:
            return
        self._rank_by_owner[owner] = self._next_rank
        self._keys_by_owner[owner] = []
        self._next_rank += 1

    def _claim(self, key: str, owner: TOwner) -> str:
        self._owner_by_key[key] = owner
        self._keys_by_owner[owner].append(key)
        return key

    def _absorb(self, loser: TOwner, *, into: TOwner) -> list[str]:
        moved = self._keys_by_owner.pop(loser)
        del self._rank_by_owner[loser]
        for key in moved:
            self._owner_by_key[key] = into
        self._keys_by_owner[into].extend(moved)
        return moved
