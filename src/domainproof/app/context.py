"""Dependency injection container for domainproof.

Created once during application startup and stored on the Flask app
via ``app.extensions["container"]``.  Accessible from any request
context with :func:`get_container`.

Usage::

    from domainproof.app.context import get_container

    c = get_container()
    challenge = c.verification.get_challenge(challenge_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import current_app

from domainproof.challenge.registry import MethodRegistry
from domainproof.core.clock import SystemClock
from domainproof.integrations import (
    DatabaseMappingRegistry,
    DnsPythonProbe,
    LogAlertSink,
    UrllibHttpProbe,
    WebhookAlertSink,
)
from domainproof.metrics.collector import MetricsCollector
from domainproof.repositories import AlertRepository, ChallengeRepository
from domainproof.services import (
    AlertEmitter,
    ChallengeIssuer,
    ChallengeScheduler,
    DomainVerificationService,
    PropagationProber,
    RetryPolicy,
    WebhookIngestor,
)

if TYPE_CHECKING:
    from pypgkit import Database

    from domainproof.config.settings import DomainProofSettings
    from domainproof.core.clock import Clock
    from domainproof.integrations import AlertSink, DnsProbe, HttpProbe, MappingRegistry

log = logging.getLogger(__name__)


class Container:
    """Application-wide dependency container.

    Collaborators default to the production adapters; pass substitutes
    to run against fakes.
    """

    def __init__(  # noqa: PLR0913
        self,
        db: Database,
        settings: DomainProofSettings,
        *,
        mappings: MappingRegistry | None = None,
        dns_probe: DnsProbe | None = None,
        http_probe: HttpProbe | None = None,
        alert_sink: AlertSink | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock or SystemClock()
        self.metrics = MetricsCollector()

        ch = settings.challenges

        # Repositories
        self.challenges = ChallengeRepository(db)
        self.alerts = AlertRepository(db)

        # Collaborators
        self.mappings = mappings or DatabaseMappingRegistry(db)
        self.dns_probe = dns_probe or DnsPythonProbe(
            resolvers=ch.dns_txt.resolvers,
            timeout_seconds=ch.dns_txt.timeout_seconds,
        )
        self.http_probe = http_probe or UrllibHttpProbe(
            timeout_seconds=ch.http.timeout_seconds,
            max_response_bytes=ch.http.max_response_bytes,
            user_agent=ch.http.user_agent,
        )
        if alert_sink is None:
            if settings.alerts.webhook_url:
                alert_sink = WebhookAlertSink(
                    settings.alerts.webhook_url,
                    timeout_seconds=settings.alerts.delivery_timeout_seconds,
                    headers=settings.alerts.headers,
                )
            else:
                alert_sink = LogAlertSink()
        self.alert_sink = alert_sink

        self.method_registry = MethodRegistry(
            ch,
            dns_probe=self.dns_probe,
            http_probe=self.http_probe,
        )
        self.retry_policy = RetryPolicy(
            base_seconds=ch.backoff_base_seconds,
            factor=ch.backoff_factor,
            max_seconds=ch.backoff_max_seconds,
        )

        # Services
        self.alert_emitter = AlertEmitter(
            self.alerts,
            self.alert_sink,
            enabled=settings.alerts.enabled,
            delivery_timeout_seconds=settings.alerts.delivery_timeout_seconds,
            max_workers=settings.alerts.max_workers,
            clock=self.clock,
            metrics=self.metrics,
        )
        self.issuer = ChallengeIssuer(
            self.challenges,
            self.mappings,
            self.method_registry,
            max_attempts=ch.max_attempts,
            clock=self.clock,
        )
        self.prober = PropagationProber(
            self.challenges,
            self.mappings,
            self.method_registry,
            self.alert_emitter,
            self.retry_policy,
            probe_timeout_seconds=ch.probe_timeout_seconds,
            localhost_fast_path=ch.localhost_fast_path,
            clock=self.clock,
            metrics=self.metrics,
            max_workers=max(settings.scheduler.concurrency * 2, 4),
        )
        self.ingestor = WebhookIngestor(
            self.challenges,
            self.alert_emitter,
            self.retry_policy,
            secret=settings.webhooks.secret,
            dedupe_window_seconds=settings.webhooks.dedupe_window_seconds,
            clock=self.clock,
            metrics=self.metrics,
        )
        self.scheduler = ChallengeScheduler(
            self.challenges,
            self.prober,
            interval_seconds=settings.scheduler.interval_seconds,
            batch_size=settings.scheduler.batch_size,
            concurrency=settings.scheduler.concurrency,
            clock=self.clock,
            metrics=self.metrics,
        )
        self.verification = DomainVerificationService(
            self.challenges,
            self.alerts,
            self.mappings,
            self.method_registry,
            self.issuer,
            self.ingestor,
            self.scheduler,
        )

    def shutdown(self) -> None:
        """Stop the scheduler and release worker pools."""
        self.scheduler.stop()
        self.prober.shutdown()
        self.alert_emitter.shutdown()


def get_container() -> Container:
    """Return the :class:`Container` for the current Flask app."""
    return current_app.extensions["container"]
