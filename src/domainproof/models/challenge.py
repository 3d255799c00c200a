"""Challenge entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from domainproof.core.types import (
    TERMINAL_STATUSES,
    ChallengeMethod,
    ChallengeStatus,
    PropagationState,
)

if TYPE_CHECKING:
    from uuid import UUID

_EPOCH = datetime(1970, 1, 1)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class Challenge:
    id: UUID
    domain_mapping_id: UUID
    method: ChallengeMethod
    token: str
    status: ChallengeStatus = ChallengeStatus.ISSUED
    txt_record_name: str | None = None
    http_path: str | None = None
    expected_value: str | None = None
    provider: str | None = None
    provider_reference_id: str | None = None
    propagation_state: PropagationState = PropagationState.PENDING
    attempt_count: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    next_attempt_at: datetime | None = None
    last_attempt_at: datetime | None = None
    last_event_at: datetime | None = None
    proof: dict | None = None
    last_error: str | None = None
    verified_at: datetime | None = None
    version: int = 0
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempt_count, 0)
