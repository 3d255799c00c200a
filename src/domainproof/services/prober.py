"""Propagation prober.

Runs one probe attempt for a challenge: looks for the proof target
through the method handler, then commits either verification or one
more failed attempt.  Probes for the same challenge never overlap
within a process; across processes the version guard on the row lets
exactly one outcome commit.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from domainproof.challenge.base import ProbeError, ProbeResult
from domainproof.core.blobs import make_probe_proof
from domainproof.core.clock import SystemClock
from domainproof.core.types import (
    AlertEventType,
    AlertSeverity,
    ChallengeStatus,
    PropagationState,
)
from domainproof.logging import challenge_context
from domainproof.services import transitions

if TYPE_CHECKING:
    from uuid import UUID

    from domainproof.challenge.registry import MethodRegistry
    from domainproof.core.clock import Clock
    from domainproof.integrations.mapping_registry import MappingRegistry
    from domainproof.models.challenge import Challenge
    from domainproof.repositories.challenge import ChallengeRepository
    from domainproof.services.alerts import AlertEmitter
    from domainproof.services.scheduler import RetryPolicy

log = logging.getLogger(__name__)

LOCALHOST_REASON = "localhost-fast-path"


class ProbeOutcome(StrEnum):
    VERIFIED = "verified"
    RETRY = "retry"
    EXHAUSTED = "exhausted"
    SKIPPED = "skipped"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class ProbeReport:
    challenge_id: UUID
    outcome: ProbeOutcome
    challenge: Challenge | None = None
    detail: str | None = None

    @property
    def committed(self) -> bool:
        return self.outcome in {ProbeOutcome.VERIFIED, ProbeOutcome.RETRY, ProbeOutcome.EXHAUSTED}


def is_localhost(domain: str) -> bool:
    host = domain.lower().rstrip(".")
    return host == "localhost" or host.endswith(".localhost")


class PropagationProber:
    """Probes challenges and commits the outcome.

    Parameters
    ----------
    challenge_repo:
        Challenge persistence (version-guarded updates).
    mappings:
        Resolves the challenge's mapping to a hostname.
    registry:
        Method handlers that perform the actual lookups.
    alerts:
        Emitter for ``recovered`` and ``exhausted`` alerts.
    policy:
        Backoff between attempts.
    probe_timeout_seconds:
        Bound on a single handler call; a timeout is a failed attempt.
    localhost_fast_path:
        Verify ``localhost`` and ``*.localhost`` without probing.

    """

    def __init__(  # noqa: PLR0913
        self,
        challenge_repo: ChallengeRepository,
        mappings: MappingRegistry,
        registry: MethodRegistry,
        alerts: AlertEmitter,
        policy: RetryPolicy,
        *,
        probe_timeout_seconds: float = 5,
        localhost_fast_path: bool = True,
        clock: Clock | None = None,
        metrics=None,
        max_workers: int = 8,
    ) -> None:
        self._challenges = challenge_repo
        self._mappings = mappings
        self._registry = registry
        self._alerts = alerts
        self._policy = policy
        self._timeout = probe_timeout_seconds
        self._localhost_fast_path = localhost_fast_path
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._in_flight: set[UUID] = set()
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="domainproof-lookup",
        )

    # -- in-flight guard ----------------------------------------------------

    def _claim(self, challenge_id: UUID) -> bool:
        with self._lock:
            if challenge_id in self._in_flight:
                return False
            self._in_flight.add(challenge_id)
            return True

    def _release(self, challenge_id: UUID) -> None:
        with self._lock:
            self._in_flight.discard(challenge_id)

    # -- public API ---------------------------------------------------------

    def probe(self, challenge: Challenge) -> ProbeReport:
        """Run one attempt for *challenge* and commit its outcome."""
        if not self._eligible(challenge):
            return ProbeReport(challenge.id, ProbeOutcome.SKIPPED, detail="not eligible")
        if not self._claim(challenge.id):
            log.debug("Probe for %s already in flight; skipping", challenge.id)
            return ProbeReport(challenge.id, ProbeOutcome.SKIPPED, detail="in flight")
        try:
            with challenge_context(
                challenge.id, challenge.domain_mapping_id, challenge.method.value
            ):
                report = self._probe(challenge)
        finally:
            self._release(challenge.id)

        if self._metrics:
            self._metrics.increment(
                "domainproof_probes_total",
                labels={"method": challenge.method.value, "outcome": report.outcome.value},
            )
        return report

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # -- internals ----------------------------------------------------------

    @staticmethod
    def _eligible(challenge: Challenge) -> bool:
        return (
            challenge.status == ChallengeStatus.ISSUED
            and challenge.propagation_state != PropagationState.READY
            and challenge.attempt_count < challenge.max_attempts
        )

    def _probe(self, challenge: Challenge) -> ProbeReport:
        mapping = self._mappings.lookup(challenge.domain_mapping_id)
        if mapping is None:
            return self._record_failure(
                challenge,
                f"domain mapping {challenge.domain_mapping_id} not found",
            )

        if self._localhost_fast_path and is_localhost(mapping.domain):
            proof = make_probe_proof(
                challenge.method.value,
                mapping.domain,
                {"reason": LOCALHOST_REASON},
                self._clock.now(),
            )
            return self._record_success(challenge, proof)

        try:
            result = self._lookup(challenge, mapping.domain)
        except ProbeError as exc:
            return self._record_failure(challenge, exc.detail)

        if result.matched:
            proof = make_probe_proof(
                challenge.method.value,
                result.target,
                result.observed,
                self._clock.now(),
            )
            return self._record_success(challenge, proof)
        return self._record_failure(challenge, result.detail or "proof target not found")

    def _lookup(self, challenge: Challenge, domain: str) -> ProbeResult:
        try:
            handler = self._registry.get_handler(challenge.method)
        except KeyError as exc:
            raise ProbeError(str(exc.args[0]), retryable=False) from exc

        future = self._executor.submit(handler.probe, challenge, domain)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            msg = f"probe timed out after {self._timeout}s"
            raise ProbeError(msg) from exc
        except ProbeError:
            raise
        except Exception as exc:
            log.exception("Unexpected error probing challenge %s", challenge.id)
            msg = f"probe error: {exc}"
            raise ProbeError(msg) from exc

    def _record_success(self, challenge: Challenge, proof: dict) -> ProbeReport:
        now = self._clock.now()
        changes = transitions.verification_changes(now, proof)
        changes["last_attempt_at"] = now
        updated = transitions.commit(self._challenges, challenge, changes, reason="probe matched")
        if updated is None:
            return ProbeReport(challenge.id, ProbeOutcome.CONFLICT)

        if challenge.attempt_count > 0:
            self._alerts.emit(
                updated,
                AlertSeverity.INFO,
                AlertEventType.RECOVERED,
                f"Challenge verified after {challenge.attempt_count} failed attempt(s)",
            )
        return ProbeReport(challenge.id, ProbeOutcome.VERIFIED, updated)

    def _record_failure(self, challenge: Challenge, reason: str) -> ProbeReport:
        now = self._clock.now()
        # A provider-reported failure stays visible until something changes it.
        keep = (
            PropagationState.FAILED
            if challenge.propagation_state == PropagationState.FAILED
            else PropagationState.PROPAGATING
        )
        changes = transitions.failed_attempt_changes(
            challenge,
            now,
            reason,
            self._policy,
            propagation_state=keep,
        )
        exhausted = transitions.is_exhausting(changes)
        updated = transitions.commit(
            self._challenges,
            challenge,
            changes,
            reason="attempts exhausted" if exhausted else None,
        )
        if updated is None:
            return ProbeReport(challenge.id, ProbeOutcome.CONFLICT, detail=reason)

        log.info(
            "Probe attempt %d/%d failed for challenge %s: %s",
            updated.attempt_count,
            updated.max_attempts,
            challenge.id,
            reason,
        )

        if exhausted:
            self._alerts.emit(
                updated,
                AlertSeverity.ERROR,
                AlertEventType.EXHAUSTED,
                f"Verification failed after {updated.attempt_count} attempt(s): {reason}",
            )
            return ProbeReport(challenge.id, ProbeOutcome.EXHAUSTED, updated, reason)
        return ProbeReport(challenge.id, ProbeOutcome.RETRY, updated, reason)
