"""In-memory stand-ins for the repositories and outside collaborators.

The repository fakes apply the same guards as the SQL they replace:
the active-challenge uniqueness rule, due selection and the version
check on updates.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from domainproof.challenge.base import ProbeError
from domainproof.core.types import ChallengeStatus, PropagationState
from domainproof.integrations.alert_sink import DeliveryResult
from domainproof.integrations.http_probe import HttpResponse
from domainproof.models.challenge import Challenge
from domainproof.repositories.challenge import MUTABLE_COLUMNS

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

EXAMPLE_MAPPING_ID = uuid.UUID("11111111-1111-4111-8111-111111111111")
LOCALHOST_MAPPING_ID = uuid.UUID("22222222-2222-4222-8222-222222222222")


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FrozenClock:
    def __init__(self, now: datetime = T0) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class FakeChallengeRepo:
    """Dict-backed stand-in for ChallengeRepository with the same guards."""

    def __init__(self) -> None:
        self.rows: dict[uuid.UUID, Challenge] = {}
        self._lock = threading.Lock()
        self.cas_calls = 0

    def add(self, challenge: Challenge) -> Challenge:
        self.rows[challenge.id] = challenge
        return challenge

    def find_by_id(self, challenge_id):
        return self.rows.get(challenge_id)

    def create_if_absent(self, entity: Challenge):
        with self._lock:
            if self._active(entity.domain_mapping_id, entity.method) is not None:
                return None
            if entity.provider_reference_id and self._active_reference(entity.provider_reference_id):
                msg = "duplicate key value violates unique constraint \"uq_challenges_provider_ref\""
                raise RuntimeError(msg)
            self.rows[entity.id] = entity
            return entity

    def _active(self, mapping_id, method):
        for c in self.rows.values():
            if (
                c.domain_mapping_id == mapping_id
                and c.method == method
                and c.status == ChallengeStatus.ISSUED
            ):
                return c
        return None

    def find_active(self, mapping_id, method):
        return self._active(mapping_id, method)

    def find_by_mapping(self, mapping_id):
        rows = [c for c in self.rows.values() if c.domain_mapping_id == mapping_id]
        return sorted(rows, key=lambda c: (-c.created_at.timestamp(), str(c.id)))

    def _active_reference(self, reference):
        return any(
            c.provider_reference_id == reference and c.status == ChallengeStatus.ISSUED
            for c in self.rows.values()
        )

    def find_by_provider_reference(self, reference):
        rows = [c for c in self.rows.values() if c.provider_reference_id == reference]
        rows.sort(
            key=lambda c: (
                c.status != ChallengeStatus.ISSUED,
                -(c.created_at.timestamp() if c.created_at else 0),
                str(c.id),
            )
        )
        return rows[0] if rows else None

    def attach_provider(self, challenge_id, expected_version, provider, provider_reference_id):
        with self._lock:
            current = self.rows.get(challenge_id)
            if (
                current is None
                or current.version != expected_version
                or current.status != ChallengeStatus.ISSUED
                or current.provider_reference_id is not None
            ):
                return None
            if self._active_reference(provider_reference_id):
                msg = "duplicate key value violates unique constraint \"uq_challenges_provider_ref\""
                raise RuntimeError(msg)
            updated = replace(
                current,
                provider=provider or current.provider,
                provider_reference_id=provider_reference_id,
                version=current.version + 1,
            )
            self.rows[challenge_id] = updated
            return updated

    def find_due(self, now, batch_size):
        due = [
            c
            for c in self.rows.values()
            if c.status == ChallengeStatus.ISSUED
            and c.propagation_state != PropagationState.READY
            and c.next_attempt_at is not None
            and c.next_attempt_at <= now
            and c.attempt_count < c.max_attempts
        ]
        due.sort(key=lambda c: (c.next_attempt_at, str(c.id)))
        return due[:batch_size]

    def compare_and_set(self, challenge_id, expected_version, changes):
        unknown = set(changes) - MUTABLE_COLUMNS
        if unknown:
            msg = f"Columns not updatable: {sorted(unknown)}"
            raise ValueError(msg)
        with self._lock:
            self.cas_calls += 1
            current = self.rows.get(challenge_id)
            if current is None or current.version != expected_version:
                return None
            updated = replace(current, **changes, version=current.version + 1)
            self.rows[challenge_id] = updated
            return updated

    def count_by_status(self):
        counts: dict[str, int] = {}
        for c in self.rows.values():
            counts[c.status.value] = counts.get(c.status.value, 0) + 1
        return counts

    def count_exhausted(self):
        return sum(
            1
            for c in self.rows.values()
            if c.status == ChallengeStatus.FAILED and c.attempt_count >= c.max_attempts
        )


class FakeAlertRepo:
    def __init__(self) -> None:
        self.rows: dict[uuid.UUID, object] = {}
        self.fail_create = False

    def create(self, alert):
        if self.fail_create:
            msg = "database unavailable"
            raise RuntimeError(msg)
        self.rows[alert.id] = alert
        return alert

    def record_delivery(self, alert_id, *, delivered, status_code, error):
        alert = self.rows.get(alert_id)
        if alert is None or alert.delivered or alert.delivery_status_code or alert.delivery_error:
            return None
        updated = replace(
            alert,
            delivered=delivered,
            delivery_status_code=status_code,
            delivery_error=error,
        )
        self.rows[alert_id] = updated
        return updated

    def find_by_challenge(self, challenge_id):
        return [a for a in self.rows.values() if a.challenge_id == challenge_id]

    def find_undelivered(self, limit=100):
        pending = [a for a in self.rows.values() if not a.delivered]
        return sorted(pending, key=lambda a: (a.created_at, str(a.id)))[:limit]

    def count(self, conditions=None):
        return len(self.rows)

    def count_undelivered(self):
        return sum(1 for a in self.rows.values() if not a.delivered)

    def all(self):
        return list(self.rows.values())


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class FakeMappings:
    def __init__(self, mappings: dict | None = None) -> None:
        self.mappings = dict(mappings or {})

    def lookup(self, mapping_id):
        return self.mappings.get(mapping_id)


class FakeDnsProbe:
    """Serves TXT records from a dict; a value that is an exception is raised."""

    def __init__(self) -> None:
        self.records: dict[str, object] = {}
        self.queries: list[str] = []

    def query_txt(self, record_name):
        self.queries.append(record_name)
        value = self.records.get(record_name)
        if isinstance(value, Exception):
            raise value
        if value is None:
            msg = f"{record_name} does not exist (NXDOMAIN)"
            raise ProbeError(msg)
        return list(value)


class FakeHttpProbe:
    def __init__(self) -> None:
        self.responses: dict[str, object] = {}
        self.fetched: list[str] = []

    def fetch(self, url):
        self.fetched.append(url)
        value = self.responses.get(url)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return HttpResponse(404, "not found")
        return value


class RecordingSink:
    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.delivered: list = []

    def deliver(self, alert):
        self.delivered.append(alert)
        if self.error is not None:
            raise self.error
        return DeliveryResult(self.status_code)
