"""Tests for WebhookIngestor."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from fakes import T0
from domainproof.core.errors import AuthenticationError, NotFoundError, ValidationError
from domainproof.core.types import (
    AlertEventType,
    AlertSeverity,
    ChallengeStatus,
    PropagationState,
)
from domainproof.metrics.collector import MetricsCollector
from domainproof.services.webhook import WebhookIngestor, sign_payload


@pytest.fixture()
def provider_challenge(make_challenge):
    return make_challenge(provider="cloudflare", provider_reference_id="ref-1")


def _event(status, **extra):
    return {"provider": "cloudflare", "providerReferenceId": "ref-1", "status": status, **extra}


class TestValidation:
    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {},
            {"status": "DONE", "providerReferenceId": "ref-1"},
            {"status": "READY", "providerReferenceId": 7},
        ],
    )
    def test_malformed_payloads(self, ingestor, payload):
        with pytest.raises(ValidationError):
            ingestor.ingest(payload)

    def test_missing_reference(self, ingestor):
        with pytest.raises(NotFoundError):
            ingestor.ingest({"status": "READY"})

    def test_unknown_reference(self, ingestor):
        with pytest.raises(NotFoundError):
            ingestor.ingest({"status": "READY", "providerReferenceId": "nope"})

    def test_provider_mismatch(self, ingestor, provider_challenge):
        with pytest.raises(NotFoundError):
            ingestor.ingest(_event("READY", provider="route53"))

    def test_errors_list_every_violation(self, ingestor):
        with pytest.raises(ValidationError) as exc_info:
            ingestor.ingest({"status": "DONE", "detail": 5})
        assert len(exc_info.value.errors) == 2


class TestApply:
    def test_ready_verifies_without_probe(self, ingestor, provider_challenge, dns_probe, alert_repo):
        result = ingestor.ingest(_event("READY", detail="visible"))

        assert result.applied
        c = result.challenge
        assert c.status == ChallengeStatus.VERIFIED
        assert c.propagation_state == PropagationState.READY
        assert c.verified_at == T0
        assert c.last_event_at == T0
        assert c.next_attempt_at is None
        assert c.proof["source"] == "webhook"
        assert c.proof["provider"] == "cloudflare"
        assert c.proof["detail"] == "visible"
        assert dns_probe.queries == []
        assert alert_repo.all() == []

    def test_ready_after_failures_emits_recovered(self, ingestor, make_challenge, alert_repo):
        make_challenge(provider="cloudflare", provider_reference_id="ref-1", attempt_count=1)
        ingestor.ingest(_event("READY"))
        (alert,) = alert_repo.all()
        assert alert.event_type == AlertEventType.RECOVERED

    def test_propagating_updates_state_only(self, ingestor, provider_challenge):
        result = ingestor.ingest(_event("PROPAGATING"))
        c = result.challenge
        assert result.applied
        assert c.status == ChallengeStatus.ISSUED
        assert c.propagation_state == PropagationState.PROPAGATING
        assert c.attempt_count == 0
        assert c.next_attempt_at == provider_challenge.next_attempt_at

    def test_failed_consumes_attempt_and_warns(self, ingestor, provider_challenge, alert_repo):
        result = ingestor.ingest(_event("FAILED", detail="zone not delegated"))
        c = result.challenge
        assert c.status == ChallengeStatus.ISSUED
        assert c.propagation_state == PropagationState.FAILED
        assert c.attempt_count == 1
        assert c.last_error == "zone not delegated"
        assert c.next_attempt_at == T0 + timedelta(seconds=30)
        (alert,) = alert_repo.all()
        assert alert.severity == AlertSeverity.WARN
        assert alert.event_type == AlertEventType.PROPAGATION_FAILED

    def test_failed_on_last_attempt_exhausts(self, ingestor, make_challenge, alert_repo):
        make_challenge(provider="cloudflare", provider_reference_id="ref-1", attempt_count=2)
        result = ingestor.ingest(_event("FAILED"))
        c = result.challenge
        assert c.status == ChallengeStatus.FAILED
        assert c.propagation_state == PropagationState.FAILED
        assert c.next_attempt_at is None
        (alert,) = alert_repo.all()
        assert alert.severity == AlertSeverity.ERROR
        assert alert.event_type == AlertEventType.EXHAUSTED

    def test_failed_then_ready_recovers(self, ingestor, provider_challenge, clock):
        ingestor.ingest(_event("FAILED"))
        clock.advance(minutes=1)
        result = ingestor.ingest(_event("READY"))
        assert result.challenge.status == ChallengeStatus.VERIFIED

    @pytest.mark.parametrize("status", ["READY", "FAILED", "PROPAGATING"])
    def test_terminal_challenge_is_not_changed(self, ingestor, make_challenge, challenge_repo, status):
        verified = make_challenge(
            provider="cloudflare",
            provider_reference_id="ref-1",
            status=ChallengeStatus.VERIFIED,
            propagation_state=PropagationState.READY,
            next_attempt_at=None,
        )
        result = ingestor.ingest(_event(status))
        assert not result.applied
        assert result.reason == "terminal"
        assert challenge_repo.find_by_id(verified.id) == verified

    def test_duplicate_within_window_is_ignored(self, ingestor, provider_challenge, clock, challenge_repo):
        ingestor.ingest(_event("FAILED"))
        clock.advance(seconds=60)
        result = ingestor.ingest(_event("FAILED"))
        assert not result.applied
        assert result.reason == "duplicate"
        assert challenge_repo.find_by_id(provider_challenge.id).attempt_count == 1

    def test_repeat_after_window_is_applied(self, ingestor, provider_challenge, clock, challenge_repo):
        ingestor.ingest(_event("FAILED"))
        clock.advance(seconds=301)
        result = ingestor.ingest(_event("FAILED"))
        assert result.applied
        assert challenge_repo.find_by_id(provider_challenge.id).attempt_count == 2

    def test_lost_race_reports_conflict(self, ingestor, provider_challenge, monkeypatch, challenge_repo):
        monkeypatch.setattr(challenge_repo, "compare_and_set", lambda *a, **kw: None)
        result = ingestor.ingest(_event("READY"))
        assert not result.applied
        assert result.reason == "conflict"

    def test_metrics(self, challenge_repo, emitter, policy, clock, provider_challenge):
        metrics = MetricsCollector()
        ingestor = WebhookIngestor(challenge_repo, emitter, policy, clock=clock, metrics=metrics)
        ingestor.ingest(_event("PROPAGATING"))
        ingestor.ingest(_event("PROPAGATING"))
        assert metrics.get("domainproof_webhooks_total", labels={"result": "applied"}) == 1
        assert metrics.get("domainproof_webhooks_total", labels={"result": "duplicate"}) == 1


class TestSignature:
    def test_no_secret_accepts_anything(self, ingestor):
        ingestor.verify_signature(b"{}", None)

    def test_valid_signature(self, challenge_repo, emitter, policy):
        ingestor = WebhookIngestor(challenge_repo, emitter, policy, secret="s3cret")
        body = json.dumps(_event("READY")).encode()
        ingestor.verify_signature(body, sign_payload("s3cret", body))

    @pytest.mark.parametrize("signature", [None, "", "sha256=deadbeef"])
    def test_invalid_signature(self, challenge_repo, emitter, policy, signature):
        ingestor = WebhookIngestor(challenge_repo, emitter, policy, secret="s3cret")
        with pytest.raises(AuthenticationError):
            ingestor.verify_signature(b"{}", signature)

    def test_signature_format(self):
        assert sign_payload("k", b"body").startswith("sha256=")
