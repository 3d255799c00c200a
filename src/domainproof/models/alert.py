"""Alert entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from domainproof.core.types import AlertEventType, AlertSeverity

if TYPE_CHECKING:
    from uuid import UUID

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Alert:
    id: UUID
    challenge_id: UUID
    mapping_id: UUID
    severity: AlertSeverity
    event_type: AlertEventType
    message: str
    payload: dict | None = None
    delivered: bool = False
    delivery_status_code: int | None = None
    delivery_error: str | None = None
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
