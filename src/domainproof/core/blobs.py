"""Versioned JSON blobs stored in ``challenge.proof`` and ``alert.payload``.

Both columns are JSONB and deliberately schemaless at the database
level, because their contents differ by method and provider.  Every
blob written by this package carries ``schema_version`` so readers can
evolve.

Schema version 1
----------------

Probe proof::

    {"schema_version": 1, "source": "probe", "method": "DNS_TXT",
     "target": "_domainproof-challenge.example.com",
     "observed": ["domainproof-verification=..."],
     "captured_at": "2026-01-01T00:00:00+00:00"}

  For HTTP ``observed`` is ``{"status_code": 200, "body_excerpt": "..."}``
  and ``target`` is the fetched URL.

Webhook proof::

    {"schema_version": 1, "source": "webhook", "provider": "cloudflare",
     "provider_reference_id": "ref-1", "detail": "...",
     "captured_at": "..."}

Alert payload::

    {"schema_version": 1, "reason": "...",
     "challenge": {<challenge snapshot without token>}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from domainproof.models.challenge import Challenge

SCHEMA_VERSION = 1

_BODY_EXCERPT_CHARS = 256


def make_probe_proof(
    method: str,
    target: str,
    observed: Any,  # noqa: ANN401
    captured_at: datetime,
) -> dict[str, Any]:
    """Build the proof blob recorded when a probe observes a match."""
    return {
        "schema_version": SCHEMA_VERSION,
        "source": "probe",
        "method": method,
        "target": target,
        "observed": observed,
        "captured_at": captured_at.isoformat(),
    }


def make_webhook_proof(
    provider: str | None,
    provider_reference_id: str | None,
    detail: str | None,
    captured_at: datetime,
) -> dict[str, Any]:
    """Build the proof blob recorded when a provider reports READY."""
    return {
        "schema_version": SCHEMA_VERSION,
        "source": "webhook",
        "provider": provider,
        "provider_reference_id": provider_reference_id,
        "detail": detail,
        "captured_at": captured_at.isoformat(),
    }


def body_excerpt(body: str) -> str:
    return body[:_BODY_EXCERPT_CHARS]


def challenge_snapshot(challenge: Challenge) -> dict[str, Any]:
    """Diagnostic view of a challenge.  The token is never included."""

    def _ts(value):
        return value.isoformat() if value is not None else None

    return {
        "id": str(challenge.id),
        "domain_mapping_id": str(challenge.domain_mapping_id),
        "method": challenge.method.value,
        "status": challenge.status.value,
        "propagation_state": challenge.propagation_state.value,
        "provider": challenge.provider,
        "provider_reference_id": challenge.provider_reference_id,
        "attempt_count": challenge.attempt_count,
        "max_attempts": challenge.max_attempts,
        "last_error": challenge.last_error,
        "last_attempt_at": _ts(challenge.last_attempt_at),
        "last_event_at": _ts(challenge.last_event_at),
        "verified_at": _ts(challenge.verified_at),
    }


def make_alert_payload(challenge: Challenge, reason: str | None) -> dict[str, Any]:
    """Build the diagnostic payload attached to an alert."""
    return {
        "schema_version": SCHEMA_VERSION,
        "reason": reason,
        "challenge": challenge_snapshot(challenge),
    }
