"""The single completion filter shared by every statistics query."""

from __future__ import annotations

from fractions import Fraction
from typing import Final

MIN_COMPLETION_RATIO: Final[Fraction] = Fraction(15, 100)
MIN_PLAYED_SECONDS: Final[int] = 120


def completion_ratio(played_seconds: float, total_duration_ms: int | None) -> Fraction | None:
    """Return ``played / total`` at millisecond precision, or ``None`` without a total."""

    if total_duration_ms is None or total_duration_ms <= 0:
        return None
    return Fraction(round(played_seconds * 1000), total_duration_ms)


def completion_percent(played_seconds: float, total_duration_ms: int | None) -> int | None:
    ratio = completion_ratio(played_seconds, total_duration_ms)
    if ratio is None:
        return None
    return round(ratio * 100)


def counts_as_play(played_seconds: float, total_duration_ms: int | None) -> bool:
    """Return whether a playback event is significant enough to count.

    With a known total duration at least 15% must have been played (inclusive);
    without one at least two minutes.
    """

    ratio = completion_ratio(played_seconds, total_duration_ms)
    if ratio is None:
        return played_seconds >= MIN_PLAYED_SECONDS
    return ratio >= MIN_COMPLETION_RATIO
