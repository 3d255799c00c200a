"""Webhook ingestor.

Applies propagation reports pushed by DNS / hosting providers.  The
provider is trusted: READY verifies the challenge without a probe.
Webhooks never create challenges; they address an existing one by
``providerReferenceId``.

Payload::

    {"provider": "cloudflare", "providerReferenceId": "ref-1",
     "status": "READY", "detail": "record visible on all edges"}
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from jsonschema import Draft202012Validator

from domainproof.core.blobs import make_webhook_proof
from domainproof.core.clock import SystemClock
from domainproof.core.errors import AuthenticationError, NotFoundError, ValidationError
from domainproof.core.types import AlertEventType, AlertSeverity, PropagationState
from domainproof.logging import challenge_context
from domainproof.services import transitions

if TYPE_CHECKING:
    from domainproof.core.clock import Clock
    from domainproof.models.challenge import Challenge
    from domainproof.repositories.challenge import ChallengeRepository
    from domainproof.services.alerts import AlertEmitter
    from domainproof.services.scheduler import RetryPolicy

log = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Domainproof-Signature"

WEBHOOK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["status"],
    "properties": {
        "provider": {"type": "string"},
        "providerReferenceId": {"type": "string"},
        "status": {"enum": [s.value for s in PropagationState]},
        "detail": {"type": "string"},
    },
}

_VALIDATOR = Draft202012Validator(WEBHOOK_SCHEMA)


@dataclass(frozen=True)
class WebhookResult:
    challenge: Challenge
    applied: bool
    reason: str | None = None


def sign_payload(secret: str, body: bytes) -> str:
    """Return the ``sha256=<hex>`` signature for *body*."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookIngestor:
    """Validates and applies provider webhooks.

    Parameters
    ----------
    challenge_repo:
        Challenge persistence (version-guarded updates).
    alerts:
        Emitter for ``recovered``, ``propagation_failed`` and
        ``exhausted`` alerts.
    policy:
        Backoff applied when a provider reports FAILED.
    secret:
        When set, every request must carry a valid HMAC signature.
    dedupe_window_seconds:
        Repeats of the current state within this window are ignored.

    """

    def __init__(
        self,
        challenge_repo: ChallengeRepository,
        alerts: AlertEmitter,
        policy: RetryPolicy,
        *,
        secret: str | None = None,
        dedupe_window_seconds: int = 300,
        clock: Clock | None = None,
        metrics=None,
    ) -> None:
        self._challenges = challenge_repo
        self._alerts = alerts
        self._policy = policy
        self._secret = secret
        self._dedupe_window = timedelta(seconds=dedupe_window_seconds)
        self._clock = clock or SystemClock()
        self._metrics = metrics

    def verify_signature(self, body: bytes, signature: str | None) -> None:
        """Raise :class:`AuthenticationError` unless *signature* matches.

        A no-op when no secret is configured.
        """
        if not self._secret:
            return
        if not signature:
            msg = f"Missing {SIGNATURE_HEADER} header"
            raise AuthenticationError(msg)
        expected = sign_payload(self._secret, body)
        if not hmac.compare_digest(expected, signature.strip()):
            msg = "Webhook signature does not match"
            raise AuthenticationError(msg)

    @staticmethod
    def validate(payload: Any) -> dict[str, Any]:  # noqa: ANN401
        """Raise :class:`ValidationError` listing every schema violation."""
        errors = sorted(_VALIDATOR.iter_errors(payload), key=lambda e: list(e.absolute_path))
        if errors:
            details = [
                f"{'.'.join(str(p) for p in e.absolute_path) or '(root)'}: {e.message}"
                for e in errors
            ]
            msg = "Malformed webhook payload"
            raise ValidationError(msg, errors=details)
        return payload

    def ingest(self, payload: Any) -> WebhookResult:  # noqa: ANN401
        """Apply one webhook event.

        Raises
        ------
        ValidationError
            The payload does not match the webhook schema.
        NotFoundError
            No challenge carries the reference, or the provider differs.

        """
        payload = self.validate(payload)
        reference = payload.get("providerReferenceId")
        if not reference:
            msg = "Webhook has no providerReferenceId"
            raise NotFoundError(msg)

        challenge = self._challenges.find_by_provider_reference(reference)
        provider = payload.get("provider")
        if challenge is None or (provider and challenge.provider and provider != challenge.provider):
            msg = f"No challenge for provider reference {reference!r}"
            raise NotFoundError(msg)

        state = PropagationState(payload["status"])
        detail = payload.get("detail")
        with challenge_context(challenge.id, challenge.domain_mapping_id, challenge.method.value):
            result = self._apply(
                challenge, state, provider or challenge.provider, reference, detail
            )

        if self._metrics:
            self._metrics.increment(
                "domainproof_webhooks_total",
                labels={"result": "applied" if result.applied else result.reason or "ignored"},
            )
        return result

    # -- state application --------------------------------------------------

    def _apply(
        self,
        challenge: Challenge,
        state: PropagationState,
        provider: str | None,
        reference: str,
        detail: str | None,
    ) -> WebhookResult:
        if challenge.is_terminal:
            log.info(
                "Webhook %s for terminal challenge %s acknowledged without change",
                state.value,
                challenge.id,
            )
            return WebhookResult(challenge, applied=False, reason="terminal")

        now = self._clock.now()
        if self._is_duplicate(challenge, state, now):
            log.debug("Duplicate webhook %s for challenge %s", state.value, challenge.id)
            return WebhookResult(challenge, applied=False, reason="duplicate")

        if state == PropagationState.READY:
            proof = make_webhook_proof(provider, reference, detail, now)
            changes = transitions.verification_changes(now, proof)
            changes["last_event_at"] = now
            updated = transitions.commit(
                self._challenges, challenge, changes, reason="provider reported READY"
            )
            if updated is None:
                return WebhookResult(challenge, applied=False, reason="conflict")
            if challenge.attempt_count > 0:
                self._alerts.emit(
                    updated,
                    AlertSeverity.INFO,
                    AlertEventType.RECOVERED,
                    f"Provider {provider or 'unknown'} reported READY after "
                    f"{challenge.attempt_count} failed attempt(s)",
                )
            return WebhookResult(updated, applied=True)

        if state == PropagationState.FAILED:
            return self._apply_failure(challenge, provider, detail, now)

        updated = transitions.commit(
            self._challenges,
            challenge,
            {"propagation_state": state, "last_event_at": now},
        )
        if updated is None:
            return WebhookResult(challenge, applied=False, reason="conflict")
        log.info("Challenge %s propagation %s (provider)", challenge.id, state.value)
        return WebhookResult(updated, applied=True)

    def _apply_failure(
        self,
        challenge: Challenge,
        provider: str | None,
        detail: str | None,
        now,
    ) -> WebhookResult:
        reason = detail or f"provider {provider or 'unknown'} reported FAILED"
        changes = transitions.failed_attempt_changes(
            challenge,
            now,
            reason,
            self._policy,
            propagation_state=PropagationState.FAILED,
        )
        changes["last_event_at"] = now
        exhausted = transitions.is_exhausting(changes)
        updated = transitions.commit(
            self._challenges,
            challenge,
            changes,
            reason="attempts exhausted" if exhausted else None,
        )
        if updated is None:
            return WebhookResult(challenge, applied=False, reason="conflict")

        if exhausted:
            self._alerts.emit(
                updated,
                AlertSeverity.ERROR,
                AlertEventType.EXHAUSTED,
                f"Verification failed after {updated.attempt_count} attempt(s): {reason}",
            )
        else:
            self._alerts.emit(
                updated,
                AlertSeverity.WARN,
                AlertEventType.PROPAGATION_FAILED,
                f"Provider reported propagation failure "
                f"(attempt {updated.attempt_count}/{updated.max_attempts}): {reason}",
            )
        return WebhookResult(updated, applied=True)

    def _is_duplicate(self, challenge: Challenge, state: PropagationState, now) -> bool:
        if challenge.propagation_state != state or challenge.last_event_at is None:
            return False
        return now - challenge.last_event_at <= self._dedupe_window
