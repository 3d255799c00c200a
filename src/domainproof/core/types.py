"""Enumerated types for the domainproof persistence layer.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that psycopg serialises as TEXT and JSON round-trips naturally.
Values are upper-case to match the wire format used by DNS/hosting
provider webhooks.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Challenge
# ---------------------------------------------------------------------------


class ChallengeMethod(StrEnum):
    DNS_TXT = "DNS_TXT"
    HTTP = "HTTP"


class ChallengeStatus(StrEnum):
    ISSUED = "ISSUED"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"


class PropagationState(StrEnum):
    PENDING = "PENDING"
    PROPAGATING = "PROPAGATING"
    READY = "READY"
    FAILED = "FAILED"


TERMINAL_STATUSES: frozenset[ChallengeStatus] = frozenset(
    {ChallengeStatus.VERIFIED, ChallengeStatus.FAILED},
)

# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


class AlertSeverity(StrEnum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class AlertEventType(StrEnum):
    EXHAUSTED = "exhausted"
    RECOVERED = "recovered"
    PROPAGATION_FAILED = "propagation_failed"
