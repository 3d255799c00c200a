"""Flask app wired to in-memory fakes for API tests."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from domainproof.app import create_app
from domainproof.config import DomainProofConfig
from domainproof.metrics.collector import MetricsCollector
from domainproof.services.verification import DomainVerificationService


@pytest.fixture()
def webhook_secret():
    return None


@pytest.fixture()
def config(minimal_config_data, webhook_secret):
    data = dict(minimal_config_data)
    data["metrics"] = {"enabled": True}
    data["scheduler"] = {"enabled": False}
    if webhook_secret:
        data["webhooks"] = {"secret": webhook_secret}
    return DomainProofConfig(data=data)


@pytest.fixture()
def container(
    config, challenge_repo, alert_repo, mappings, registry, issuer, emitter, policy, clock, scheduler
):
    from domainproof.services.webhook import WebhookIngestor

    ingestor = WebhookIngestor(
        challenge_repo,
        emitter,
        policy,
        secret=config.settings.webhooks.secret,
        clock=clock,
    )
    verification = DomainVerificationService(
        challenge_repo, alert_repo, mappings, registry, issuer, ingestor, scheduler,
    )
    return SimpleNamespace(
        db=MagicMock(),
        settings=config.settings,
        metrics=MetricsCollector(),
        scheduler=scheduler,
        verification=verification,
        shutdown=lambda: None,
    )


@pytest.fixture()
def app(config, container):
    app = create_app(config, container=container, start_scheduler=False)
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client
