"""Debounced reconciliation triggered by live server notifications."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from mediaunion.domain.reconciliation.run_lock import ReconciliationInProgressError

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 2.0


class ReconcileTrigger:
    """Start at most one background run per cooldown window.

    Notifications that arrive while a run is in flight, or within the cooldown
    of the previous start, are dropped rather than queued.
    """

    def __init__(
        self,
        run: Callable[[], object],
        *,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._run = run
        self._cooldown = cooldown_seconds
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._running = False
        self._last_started: float | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def notify(self) -> bool:
        """Request a run; return whether one was started."""

        with self._lock:
            now = self._monotonic()
            if self._running:
                log.debug("Reconciliation already running; dropping trigger")
                return False
            if self._last_started is not None and now - self._last_started <= self._cooldown:
                log.debug("Reconciliation triggered within cooldown; dropping trigger")
                return False
            self._running = True
            self._last_started = now
            self._thread = threading.Thread(
                target=self._execute, name="mediaunion-reconcile", daemon=True
            )
            thread = self._thread
        thread.start()
        return True

    def wait(self, timeout: float | None = None) -> None:
        """Block until the current background run, if any, has finished."""

        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def _execute(self) -> None:
        try:
            self._run()
        except ReconciliationInProgressError as exc:
            log.info("Skipped triggered reconciliation: %s", exc)
        except Exception:
            log.exception("Triggered reconciliation failed")
        finally:
            with self._lock:
                self._running = False
