"""Challenge state machines.

Defines the valid transitions for challenge ``status`` and
``propagation_state`` and the cross-field invariants every persisted
challenge must satisfy.  All transitions are enforced via
:func:`assert_transition`.

Usage::

    from domainproof.core.state import STATUS_TRANSITIONS, assert_transition
    from domainproof.core.types import ChallengeStatus

    assert_transition(
        ChallengeStatus.ISSUED, ChallengeStatus.VERIFIED,
        STATUS_TRANSITIONS,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from domainproof.core.types import (
    TERMINAL_STATUSES,
    ChallengeStatus,
    PropagationState,
)

if TYPE_CHECKING:
    from domainproof.models.challenge import Challenge

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Status: issued → verified/failed.  verified & failed are terminal.
# ---------------------------------------------------------------------------

STATUS_TRANSITIONS: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.ISSUED: frozenset({ChallengeStatus.VERIFIED, ChallengeStatus.FAILED}),
    ChallengeStatus.VERIFIED: frozenset(),
    ChallengeStatus.FAILED: frozenset(),
}

# ---------------------------------------------------------------------------
# Propagation: anything but READY may move freely between the
# non-terminal states; READY is terminal.  A provider-reported FAILED
# is recoverable while attempts remain.
# ---------------------------------------------------------------------------

PROPAGATION_TRANSITIONS: dict[PropagationState, frozenset[PropagationState]] = {
    PropagationState.PENDING: frozenset(
        {
            PropagationState.PROPAGATING,
            PropagationState.READY,
            PropagationState.FAILED,
        }
    ),
    PropagationState.PROPAGATING: frozenset(
        {
            PropagationState.PENDING,
            PropagationState.READY,
            PropagationState.FAILED,
        }
    ),
    PropagationState.FAILED: frozenset(
        {
            PropagationState.PENDING,
            PropagationState.PROPAGATING,
            PropagationState.READY,
        }
    ),
    PropagationState.READY: frozenset(),
}


def assert_transition(
    current: ChallengeStatus | PropagationState,
    target: ChallengeStatus | PropagationState,
    table: dict,
) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed.

    Staying in the same state is always allowed.

    Parameters
    ----------
    current:
        The current state.
    target:
        The desired new state.
    table:
        :data:`STATUS_TRANSITIONS` or :data:`PROPAGATION_TRANSITIONS`.

    """
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown state {current!r}"
        raise ValueError(msg)
    if target == current:
        return
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(msg)


def invariant_violations(challenge: Challenge) -> list[str]:
    """Return a description of every invariant *challenge* breaks."""
    problems: list[str] = []
    if challenge.attempt_count > challenge.max_attempts:
        problems.append(
            f"attempt_count {challenge.attempt_count} exceeds max_attempts {challenge.max_attempts}",
        )
    if challenge.status in TERMINAL_STATUSES and challenge.next_attempt_at is not None:
        problems.append(f"terminal status {challenge.status.value} has next_attempt_at set")
    if (
        challenge.status == ChallengeStatus.VERIFIED
        and challenge.propagation_state != PropagationState.READY
    ):
        problems.append(
            f"VERIFIED challenge has propagation_state {challenge.propagation_state.value}",
        )
    return problems


def assert_invariants(challenge: Challenge) -> None:
    """Raise :class:`ValueError` if *challenge* breaks any invariant."""
    problems = invariant_violations(challenge)
    if problems:
        msg = f"Challenge {challenge.id} violates invariants: {'; '.join(problems)}"
        raise ValueError(msg)


def log_transition(
    resource_id,
    from_status,
    to_status,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for a challenge status transition.

    Parameters
    ----------
    resource_id:
        The UUID of the challenge.
    from_status:
        The previous status value.
    to_status:
        The new status value.
    reason:
        Optional human-readable reason for the transition.

    """
    extra = {
        "event": "state_transition",
        "resource_type": "challenge",
        "resource_id": str(resource_id),
        "from_status": from_status.value if hasattr(from_status, "value") else str(from_status),
        "to_status": to_status.value if hasattr(to_status, "value") else str(to_status),
    }
    if reason:
        extra["reason"] = reason
    log.info(
        "challenge %s: %s -> %s%s",
        resource_id,
        extra["from_status"],
        extra["to_status"],
        f" ({reason})" if reason else "",
        extra=extra,
    )
