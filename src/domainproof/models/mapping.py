"""Domain mapping view, as returned by the mapping registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


@dataclass(frozen=True)
class DomainMapping:
    id: UUID
    domain: str
    site_id: str
