"""Named statistics windows and the clock used to anchor them."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Return ``value`` in UTC, treating naive timestamps as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TimeRange(StrEnum):
    """Look-back window for statistics queries."""

    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    ALL = "all"

    @classmethod
    def parse(cls, value: str | TimeRange) -> TimeRange:
        """Parse a range label, raising ``ValueError`` for unknown labels."""

        try:
            return cls(value)
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown time range {value!r}; expected one of: {choices}") from exc

    @property
    def span(self) -> timedelta | None:
        return _SPANS[self]

    def cutoff(self, *, clock: Clock = utcnow) -> datetime | None:
        """Return the earliest included timestamp, or ``None`` for ``all``."""

        span = self.span
        if span is None:
            return None
        return ensure_aware(clock()) - span


_SPANS: dict[TimeRange, timedelta | None] = {
    TimeRange.DAY: timedelta(hours=24),
    TimeRange.WEEK: timedelta(days=7),
    TimeRange.MONTH: timedelta(days=30),
    TimeRange.QUARTER: timedelta(days=90),
    TimeRange.ALL: None,
}


__all__ = ["Clock", "TimeRange", "ensure_aware", "utcnow"]
