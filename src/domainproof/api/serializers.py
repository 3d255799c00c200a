"""Response serialization for challenges and alerts.

Each function takes a model entity and produces a dictionary suitable
for ``flask.jsonify``.  The raw token is never exposed; clients read
what to publish from ``instructions``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from domainproof.models.alert import Alert
    from domainproof.models.challenge import Challenge


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_challenge(
    challenge: Challenge,
    instructions: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Serialize a verification challenge."""
    result: dict[str, Any] = {
        "id": str(challenge.id),
        "domainMappingId": str(challenge.domain_mapping_id),
        "method": challenge.method.value,
        "status": challenge.status.value,
        "propagationState": challenge.propagation_state.value,
        "attemptCount": challenge.attempt_count,
        "maxAttempts": challenge.max_attempts,
        "nextAttemptAt": _ts(challenge.next_attempt_at),
        "lastAttemptAt": _ts(challenge.last_attempt_at),
        "verifiedAt": _ts(challenge.verified_at),
        "createdAt": _ts(challenge.created_at),
        "updatedAt": _ts(challenge.updated_at),
    }
    if challenge.provider:
        result["provider"] = challenge.provider
    if challenge.provider_reference_id:
        result["providerReferenceId"] = challenge.provider_reference_id
    if challenge.last_event_at is not None:
        result["lastEventAt"] = _ts(challenge.last_event_at)
    if challenge.last_error:
        result["lastError"] = challenge.last_error
    if challenge.proof is not None:
        result["proof"] = challenge.proof
    if instructions is not None:
        result["instructions"] = instructions
    return result


def serialize_alert(alert: Alert) -> dict[str, Any]:
    return {
        "id": str(alert.id),
        "challengeId": str(alert.challenge_id),
        "mappingId": str(alert.mapping_id),
        "severity": alert.severity.value,
        "eventType": alert.event_type.value,
        "message": alert.message,
        "delivered": alert.delivered,
        "deliveryStatusCode": alert.delivery_status_code,
        "deliveryError": alert.delivery_error,
        "createdAt": _ts(alert.created_at),
    }
