"""Append-only playback history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from mediaunion.domain.model.entity import Entity
from mediaunion.domain.model.media import RecordRef

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class PlaybackEvent(Entity):
    """A user watching one server record.

    ``subtitle_text`` carries the server's free-form subtitle, e.g.
    ``"S02E05 - The Fly"``; ``raw_metadata`` the payload captured at play time.
    """

    user: str
    server_id: str
    record_key: str
    start_time: datetime
    played_duration_seconds: float
    title: str | None = None
    subtitle_text: str | None = None
    raw_metadata: str | None = None

    @property
    def ref(self) -> RecordRef:
        return RecordRef(self.server_id, self.record_key)
