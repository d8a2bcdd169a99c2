from __future__ import annotations

from fractions import Fraction
from math import nextafter

import pytest

from mediaunion.domain.aggregation import completion_percent, completion_ratio, counts_as_play

HUNDRED_MINUTES_MS = 100 * 60 * 1000


def test_fifteen_percent_is_included() -> None:
    assert counts_as_play(900, HUNDRED_MINUTES_MS)


def test_just_below_fifteen_percent_is_excluded() -> None:
    assert not counts_as_play(0.149999 * 6000, HUNDRED_MINUTES_MS)


@pytest.mark.parametrize(
    ("played", "expected"),
    [(120, True), (119.9, False), (0, False), (3600, True)],
)
def test_unknown_duration_falls_back_to_two_minutes(played: float, expected: bool) -> None:
    assert counts_as_play(played, None) is expected
    assert counts_as_play(played, 0) is expected


def test_ratio_is_exact() -> None:
    assert completion_ratio(900, HUNDRED_MINUTES_MS) == Fraction(3, 20)
    assert completion_ratio(900, None) is None


def test_completion_percent() -> None:
    assert completion_percent(3000, HUNDRED_MINUTES_MS) == 50
    assert completion_percent(3000, None) is None


@pytest.mark.parametrize("minutes", [24, 42, 45, 58, 90, 137])
def test_fifteen_percent_of_float_runtime_is_included(minutes: int) -> None:
    runtime_ms = minutes * 60 * 1000
    played = 0.15 * minutes * 60

    assert counts_as_play(played, runtime_ms)


def test_twenty_four_minute_episode_boundary() -> None:
    assert counts_as_play(nextafter(216, 0), 1_440_000)
    assert not counts_as_play(215.99, 1_440_000)
