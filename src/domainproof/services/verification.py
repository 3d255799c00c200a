"""Domain verification facade.

The single entry point used by the HTTP API and the CLI.  Wraps the
issuer, prober, webhook ingestor and scheduler, and computes the SLO
summary.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from domainproof.core.errors import NotFoundError
from domainproof.core.types import ChallengeStatus

if TYPE_CHECKING:
    from uuid import UUID

    from domainproof.challenge.registry import MethodRegistry
    from domainproof.core.types import ChallengeMethod
    from domainproof.integrations.mapping_registry import MappingRegistry
    from domainproof.models.alert import Alert
    from domainproof.models.challenge import Challenge
    from domainproof.repositories.alert import AlertRepository
    from domainproof.repositories.challenge import ChallengeRepository
    from domainproof.services.issuer import ChallengeIssuer, IssueResult
    from domainproof.services.scheduler import ChallengeScheduler, TickSummary
    from domainproof.services.webhook import WebhookIngestor, WebhookResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeSloMetrics:
    total_challenges: int
    verified_count: int
    failed_count: int
    pending_count: int
    exhausted_count: int
    alert_count: int
    undelivered_alerts: int
    verification_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DomainVerificationService:
    """Facade over the verification components."""

    def __init__(  # noqa: PLR0913
        self,
        challenge_repo: ChallengeRepository,
        alert_repo: AlertRepository,
        mappings: MappingRegistry,
        registry: MethodRegistry,
        issuer: ChallengeIssuer,
        ingestor: WebhookIngestor,
        scheduler: ChallengeScheduler,
    ) -> None:
        self._challenges = challenge_repo
        self._alerts = alert_repo
        self._mappings = mappings
        self._registry = registry
        self._issuer = issuer
        self._ingestor = ingestor
        self._scheduler = scheduler

    # -- challenges ---------------------------------------------------------

    def issue(
        self,
        mapping_id: UUID,
        method: str | ChallengeMethod,
        **kwargs: Any,  # noqa: ANN401
    ) -> IssueResult:
        return self._issuer.issue(mapping_id, method, **kwargs)

    def issue_challenge(self, mapping_id: UUID, method: str | ChallengeMethod) -> Challenge:
        """Create a challenge, or return the active one for the mapping and method."""
        return self._issuer.issue(mapping_id, method).challenge

    def get_challenge(self, challenge_id: UUID) -> Challenge:
        challenge = self._challenges.find_by_id(challenge_id)
        if challenge is None:
            msg = f"Challenge {challenge_id} not found"
            raise NotFoundError(msg)
        return challenge

    def list_challenges(self, mapping_id: UUID) -> list[Challenge]:
        if self._mappings.lookup(mapping_id) is None:
            msg = f"Domain mapping {mapping_id} not found"
            raise NotFoundError(msg)
        return self._challenges.find_by_mapping(mapping_id)

    def instructions_for(self, challenge: Challenge) -> dict[str, Any] | None:
        """Publishing instructions, or None if the mapping or method is gone."""
        mapping = self._mappings.lookup(challenge.domain_mapping_id)
        if mapping is None or not self._registry.is_enabled(challenge.method):
            return None
        handler = self._registry.get_handler(challenge.method)
        return handler.describe_instructions(challenge, mapping.domain)

    # -- webhooks -----------------------------------------------------------

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> None:
        self._ingestor.verify_signature(body, signature)

    def ingest_webhook(self, payload: Any) -> Challenge:  # noqa: ANN401
        return self.ingest_webhook_event(payload).challenge

    def ingest_webhook_event(self, payload: Any) -> WebhookResult:  # noqa: ANN401
        return self._ingestor.ingest(payload)

    # -- scheduling ---------------------------------------------------------

    def poll_due_challenges(self) -> TickSummary:
        """Run one scheduler tick synchronously."""
        return self._scheduler.tick()

    # -- alerts & SLO -------------------------------------------------------

    def undelivered_alerts(self, limit: int = 100) -> list[Alert]:
        return self._alerts.find_undelivered(limit)

    def slo_metrics(self) -> ChallengeSloMetrics:
        by_status = self._challenges.count_by_status()
        verified = by_status.get(ChallengeStatus.VERIFIED.value, 0)
        failed = by_status.get(ChallengeStatus.FAILED.value, 0)
        pending = by_status.get(ChallengeStatus.ISSUED.value, 0)
        terminal = verified + failed
        return ChallengeSloMetrics(
            total_challenges=sum(by_status.values()),
            verified_count=verified,
            failed_count=failed,
            pending_count=pending,
            exhausted_count=self._challenges.count_exhausted(),
            alert_count=self._alerts.count(),
            undelivered_alerts=self._alerts.count_undelivered(),
            verification_rate=round(verified / terminal, 4) if terminal else 0.0,
        )
