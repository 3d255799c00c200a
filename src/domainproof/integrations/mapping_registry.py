"""Domain-mapping registry: resolves a mapping id to its hostname."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from domainproof.models.mapping import DomainMapping

if TYPE_CHECKING:
    from uuid import UUID

    from pypgkit import Database

log = logging.getLogger(__name__)


class MappingRegistry(Protocol):
    def lookup(self, mapping_id: UUID) -> DomainMapping | None: ...


class DatabaseMappingRegistry:
    """Reads the platform's ``domain_mappings`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def lookup(self, mapping_id: UUID) -> DomainMapping | None:
        row = self._db.fetch_one(
            "SELECT id, domain, site_id FROM domain_mappings WHERE id = %s",
            (mapping_id,),
            as_dict=True,
        )
        if row is None:
            return None
        return DomainMapping(
            id=row["id"],
            domain=row["domain"].lower().rstrip("."),
            site_id=row["site_id"],
        )
