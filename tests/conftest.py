"""Root conftest for the domainproof test suite.

Wires the in-memory fakes from :mod:`fakes` into the real services and
provides a clock the tests move by hand.
"""

from __future__ import annotations

import sys
import uuid
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from fakes import (  # noqa: E402
    EXAMPLE_MAPPING_ID,
    LOCALHOST_MAPPING_ID,
    T0,
    FakeAlertRepo,
    FakeChallengeRepo,
    FakeDnsProbe,
    FakeHttpProbe,
    FakeMappings,
    FrozenClock,
    RecordingSink,
)

from domainproof.challenge.registry import MethodRegistry  # noqa: E402
from domainproof.config.settings import build_settings  # noqa: E402
from domainproof.core.types import ChallengeMethod  # noqa: E402
from domainproof.models.challenge import Challenge  # noqa: E402
from domainproof.models.mapping import DomainMapping  # noqa: E402
from domainproof.services.alerts import AlertEmitter  # noqa: E402
from domainproof.services.issuer import ChallengeIssuer  # noqa: E402
from domainproof.services.prober import PropagationProber  # noqa: E402
from domainproof.services.scheduler import ChallengeScheduler, RetryPolicy  # noqa: E402
from domainproof.services.webhook import WebhookIngestor  # noqa: E402


# ---------------------------------------------------------------------------
# Config data
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {"database": {"database": "domainproof_test", "user": "testuser"}}


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the DomainProofConfig singleton before and after every test."""
    from domainproof.config.domainproof_config import DomainProofConfig

    DomainProofConfig.reset()
    yield
    DomainProofConfig.reset()


@pytest.fixture()
def settings(minimal_config_data):
    return build_settings(minimal_config_data)


# ---------------------------------------------------------------------------
# Fakes and wired services
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def challenge_repo() -> FakeChallengeRepo:
    return FakeChallengeRepo()


@pytest.fixture()
def alert_repo() -> FakeAlertRepo:
    return FakeAlertRepo()


@pytest.fixture()
def mappings() -> FakeMappings:
    return FakeMappings(
        {
            EXAMPLE_MAPPING_ID: DomainMapping(EXAMPLE_MAPPING_ID, "shop.example.com", "site-1"),
            LOCALHOST_MAPPING_ID: DomainMapping(LOCALHOST_MAPPING_ID, "dev.localhost", "site-2"),
        }
    )


@pytest.fixture()
def dns_probe() -> FakeDnsProbe:
    return FakeDnsProbe()


@pytest.fixture()
def http_probe() -> FakeHttpProbe:
    return FakeHttpProbe()


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def registry(settings, dns_probe, http_probe) -> MethodRegistry:
    return MethodRegistry(settings.challenges, dns_probe=dns_probe, http_probe=http_probe)


@pytest.fixture()
def policy() -> RetryPolicy:
    return RetryPolicy(base_seconds=30, factor=2.0, max_seconds=3600)


@pytest.fixture()
def emitter(alert_repo, sink, clock):
    e = AlertEmitter(alert_repo, sink, clock=clock)
    yield e
    e.shutdown()


@pytest.fixture()
def issuer(challenge_repo, mappings, registry, clock) -> ChallengeIssuer:
    return ChallengeIssuer(challenge_repo, mappings, registry, max_attempts=3, clock=clock)


@pytest.fixture()
def prober(challenge_repo, mappings, registry, emitter, policy, clock):
    p = PropagationProber(
        challenge_repo,
        mappings,
        registry,
        emitter,
        policy,
        probe_timeout_seconds=2,
        clock=clock,
    )
    yield p
    p.shutdown()


@pytest.fixture()
def ingestor(challenge_repo, emitter, policy, clock) -> WebhookIngestor:
    return WebhookIngestor(challenge_repo, emitter, policy, clock=clock)


@pytest.fixture()
def scheduler(challenge_repo, prober, clock) -> ChallengeScheduler:
    return ChallengeScheduler(
        challenge_repo,
        prober,
        interval_seconds=1,
        batch_size=10,
        concurrency=2,
        clock=clock,
    )


@pytest.fixture()
def make_challenge(challenge_repo):
    """Factory that stores a challenge in the fake repository."""

    def _make(**overrides) -> Challenge:
        fields = {
            "id": uuid.uuid4(),
            "domain_mapping_id": EXAMPLE_MAPPING_ID,
            "method": ChallengeMethod.DNS_TXT,
            "token": "tok-" + uuid.uuid4().hex,
            "txt_record_name": "_domainproof-challenge.shop.example.com",
            "expected_value": "domainproof-verification=expected",
            "max_attempts": 3,
            "next_attempt_at": T0,
            "created_at": T0,
            "updated_at": T0,
        }
        fields.update(overrides)
        return challenge_repo.add(Challenge(**fields))

    return _make
