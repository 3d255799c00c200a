"""Change sets shared by the prober and the webhook ingestor.

Both paths drive a challenge to the same two outcomes (verified, or
one more failed attempt) and commit through the same version-guarded
update.  Builders here return plain ``{column: value}`` dicts for
:meth:`ChallengeRepository.compare_and_set`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from domainproof.core.state import (
    PROPAGATION_TRANSITIONS,
    STATUS_TRANSITIONS,
    assert_invariants,
    assert_transition,
    log_transition,
)
from domainproof.core.types import ChallengeStatus, PropagationState

if TYPE_CHECKING:
    from datetime import datetime

    from domainproof.models.challenge import Challenge
    from domainproof.repositories.challenge import ChallengeRepository
    from domainproof.services.scheduler import RetryPolicy

log = logging.getLogger(__name__)


def verification_changes(now: datetime, proof: dict[str, Any]) -> dict[str, Any]:
    return {
        "status": ChallengeStatus.VERIFIED,
        "propagation_state": PropagationState.READY,
        "verified_at": now,
        "next_attempt_at": None,
        "proof": proof,
        "last_error": None,
    }


def failed_attempt_changes(
    challenge: Challenge,
    now: datetime,
    reason: str,
    policy: RetryPolicy,
    *,
    propagation_state: PropagationState = PropagationState.PROPAGATING,
) -> dict[str, Any]:
    """Record one failed attempt, exhausting the challenge on the last one."""
    attempts = min(challenge.attempt_count + 1, challenge.max_attempts)
    changes: dict[str, Any] = {
        "attempt_count": attempts,
        "last_attempt_at": now,
        "last_error": reason,
        "propagation_state": propagation_state,
    }
    if attempts >= challenge.max_attempts:
        changes["status"] = ChallengeStatus.FAILED
        changes["propagation_state"] = PropagationState.FAILED
        changes["next_attempt_at"] = None
    else:
        changes["next_attempt_at"] = now + policy.backoff(attempts)
    return changes


def is_exhausting(changes: dict[str, Any]) -> bool:
    return changes.get("status") == ChallengeStatus.FAILED


def commit(
    repo: ChallengeRepository,
    challenge: Challenge,
    changes: dict[str, Any],
    *,
    reason: str | None = None,
) -> Challenge | None:
    """Validate and apply *changes* against the version *challenge* was read at.

    Raises :class:`ValueError` for an illegal transition.  Returns the
    committed challenge, or None if another writer got there first.
    """
    assert_transition(
        challenge.status,
        changes.get("status", challenge.status),
        STATUS_TRANSITIONS,
    )
    assert_transition(
        challenge.propagation_state,
        changes.get("propagation_state", challenge.propagation_state),
        PROPAGATION_TRANSITIONS,
    )
    assert_invariants(replace(challenge, **changes))

    updated = repo.compare_and_set(challenge.id, challenge.version, changes)
    if updated is None:
        log.debug(
            "Challenge %s moved past version %d; discarding result",
            challenge.id,
            challenge.version,
        )
        return None

    if updated.status != challenge.status:
        log_transition(challenge.id, challenge.status, updated.status, reason=reason)
    return updated
