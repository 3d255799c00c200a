"""Retry scheduling.

:class:`RetryPolicy` computes the delay before the next probe attempt.
:class:`ChallengeScheduler` is the background service that wakes up
periodically, selects due challenges and probes them on a bounded
thread pool.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from domainproof.core.clock import SystemClock

if TYPE_CHECKING:
    from datetime import datetime

    from domainproof.core.clock import Clock
    from domainproof.models.challenge import Challenge
    from domainproof.repositories.challenge import ChallengeRepository
    from domainproof.services.prober import ProbeReport, PropagationProber

log = logging.getLogger(__name__)

_MAX_FAILURE_BACKOFF_SECONDS = 300


@dataclass(frozen=True)
class RetryPolicy:
    """Capped exponential backoff.

    ``backoff(n) = min(base * factor ** (n - 1), cap)`` for the n-th
    failed attempt; anything below 1 gets the base delay.
    """

    base_seconds: int = 30
    factor: float = 2.0
    max_seconds: int = 3600

    def backoff(self, attempt_count: int) -> timedelta:
        if attempt_count <= 0:
            return timedelta(seconds=self.base_seconds)
        # Cap the exponent as well; factor ** n overflows long before n matters.
        exponent = min(attempt_count - 1, 64)
        delay = min(self.base_seconds * (self.factor**exponent), self.max_seconds)
        return timedelta(seconds=delay)


def due_challenges(
    repo: ChallengeRepository,
    now: datetime,
    batch_size: int,
) -> list[Challenge]:
    """Challenges eligible for a probe at *now*, oldest due first."""
    return repo.find_due(now, batch_size)


@dataclass(frozen=True)
class TickSummary:
    scanned: int
    processed: int
    outcomes: dict[str, int]


class ChallengeScheduler:
    """Daemon thread that probes due challenges.

    Parameters
    ----------
    challenge_repo:
        Source of due challenges.
    prober:
        Performs each probe and commits its outcome.
    interval_seconds:
        Sleep between ticks.
    batch_size:
        Maximum challenges selected per tick.
    concurrency:
        Probe worker threads per tick.
    clock:
        Time source used for due-time selection.
    metrics:
        Optional :class:`MetricsCollector`.

    """

    def __init__(
        self,
        challenge_repo: ChallengeRepository,
        prober: PropagationProber,
        *,
        interval_seconds: float = 30,
        batch_size: int = 25,
        concurrency: int = 4,
        clock: Clock | None = None,
        metrics=None,
    ) -> None:
        self._challenges = challenge_repo
        self._prober = prober
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._concurrency = concurrency
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._consecutive_failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread.  No-op if already running."""
        if self.running:
            return
        self._stop_event.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self._concurrency,
            thread_name_prefix="domainproof-probe",
        )
        self._thread = threading.Thread(
            target=self._run,
            name="challenge-scheduler",
            daemon=True,
        )
        self._thread.start()
        log.info(
            "Challenge scheduler started (interval=%ss, batch=%d, concurrency=%d)",
            self._interval,
            self._batch_size,
            self._concurrency,
        )

    def stop(self) -> None:
        """Signal the thread to stop and wait for the current tick."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval + 5)
            self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        log.info("Challenge scheduler stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
                self._consecutive_failures = 0
                if self._metrics:
                    self._metrics.increment(
                        "domainproof_scheduler_ticks_total",
                        labels={"result": "ok"},
                    )
            except Exception:
                self._consecutive_failures += 1
                log.exception(
                    "Scheduler tick error (consecutive failures: %d)",
                    self._consecutive_failures,
                )
                if self._metrics:
                    self._metrics.increment(
                        "domainproof_scheduler_ticks_total",
                        labels={"result": "error"},
                    )
                backoff = min(
                    self._interval * (2**self._consecutive_failures),
                    _MAX_FAILURE_BACKOFF_SECONDS,
                )
                self._stop_event.wait(timeout=backoff)
                continue
            self._stop_event.wait(timeout=self._interval)

    def tick(self) -> TickSummary:
        """Select due challenges and probe them; wait for all probes.

        Usable without :meth:`start` (the CLI runs single ticks); a
        temporary pool is used then.
        """
        tick_id = f"tick-{uuid.uuid4().hex[:12]}"
        now = self._clock.now()
        due = due_challenges(self._challenges, now, self._batch_size)
        if not due:
            log.debug("No challenges due", extra={"tick_id": tick_id})
            return TickSummary(scanned=0, processed=0, outcomes={})

        log.info("Probing %d due challenge(s)", len(due), extra={"tick_id": tick_id})

        executor = self._executor
        owned = executor is None
        if owned:
            executor = ThreadPoolExecutor(
                max_workers=self._concurrency,
                thread_name_prefix="domainproof-probe",
            )
        try:
            futures = [executor.submit(self._prober.probe, c) for c in due]
            wait(futures)
        finally:
            if owned:
                executor.shutdown(wait=True)

        outcomes: dict[str, int] = {}
        processed = 0
        for future in futures:
            exc = future.exception()
            if exc is not None:
                log.error(
                    "Probe raised unexpectedly",
                    exc_info=(type(exc), exc, exc.__traceback__),
                    extra={"tick_id": tick_id},
                )
                outcomes["error"] = outcomes.get("error", 0) + 1
                continue
            report: ProbeReport = future.result()
            outcomes[report.outcome.value] = outcomes.get(report.outcome.value, 0) + 1
            if report.committed:
                processed += 1

        return TickSummary(scanned=len(due), processed=processed, outcomes=outcomes)
