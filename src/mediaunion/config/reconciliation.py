"""Reconciliation and statistics defaults."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import optional_env_float, optional_env_int

DEFAULT_RUN_TIMEOUT_MINUTES = 30
DEFAULT_TRIGGER_COOLDOWN_SECONDS = 2.0
DEFAULT_POPULAR_LIMIT = 20
DEFAULT_MAX_EVENTS = 50_000


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    """Tunables for reconciliation runs and the statistics queries."""

    run_timeout: timedelta = timedelta(minutes=DEFAULT_RUN_TIMEOUT_MINUTES)
    trigger_cooldown_seconds: float = DEFAULT_TRIGGER_COOLDOWN_SECONDS
    popular_limit: int = DEFAULT_POPULAR_LIMIT
    max_events: int = DEFAULT_MAX_EVENTS


def get_reconciliation_config() -> ReconciliationConfig:
    timeout_minutes = optional_env_int(
        "MEDIAUNION_RUN_TIMEOUT_MINUTES", DEFAULT_RUN_TIMEOUT_MINUTES, minimum=1
    )
    return ReconciliationConfig(
        run_timeout=timedelta(minutes=timeout_minutes),
        trigger_cooldown_seconds=optional_env_float(
            "MEDIAUNION_TRIGGER_COOLDOWN_SECONDS", DEFAULT_TRIGGER_COOLDOWN_SECONDS
        ),
        popular_limit=optional_env_int(
            "MEDIAUNION_POPULAR_LIMIT", DEFAULT_POPULAR_LIMIT, minimum=1
        ),
        max_events=optional_env_int("MEDIAUNION_MAX_EVENTS", DEFAULT_MAX_EVENTS, minimum=1),
    )
