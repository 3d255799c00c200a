"""Business services: issuance, probing, webhooks, scheduling, alerts."""

from domainproof.services.alerts import AlertEmitter
from domainproof.services.issuer import ChallengeIssuer, IssueResult
from domainproof.services.prober import ProbeOutcome, ProbeReport, PropagationProber
from domainproof.services.scheduler import ChallengeScheduler, RetryPolicy, TickSummary
from domainproof.services.verification import ChallengeSloMetrics, DomainVerificationService
from domainproof.services.webhook import WebhookIngestor, WebhookResult

__all__ = [
    "AlertEmitter",
    "ChallengeIssuer",
    "ChallengeScheduler",
    "ChallengeSloMetrics",
    "DomainVerificationService",
    "IssueResult",
    "ProbeOutcome",
    "ProbeReport",
    "PropagationProber",
    "RetryPolicy",
    "TickSummary",
    "WebhookIngestor",
    "WebhookResult",
]
