"""Alert repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from domainproof.core.types import AlertEventType, AlertSeverity
from domainproof.models.alert import Alert

if TYPE_CHECKING:
    from uuid import UUID


class AlertRepository(BaseRepository[Alert]):
    table_name = "domain_challenge_alerts"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Alert:
        return Alert(
            id=row["id"],
            challenge_id=row["challenge_id"],
            mapping_id=row["mapping_id"],
            severity=AlertSeverity(row["severity"]),
            event_type=AlertEventType(row["event_type"]),
            message=row["message"],
            payload=row.get("payload"),
            delivered=row["delivered"],
            delivery_status_code=row.get("delivery_status_code"),
            delivery_error=row.get("delivery_error"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Alert) -> dict:
        return {
            "id": entity.id,
            "challenge_id": entity.challenge_id,
            "mapping_id": entity.mapping_id,
            "severity": entity.severity.value,
            "event_type": entity.event_type.value,
            "message": entity.message,
            "payload": Jsonb(entity.payload) if entity.payload is not None else None,
            "delivered": entity.delivered,
            "delivery_status_code": entity.delivery_status_code,
            "delivery_error": entity.delivery_error,
        }

    def record_delivery(
        self,
        alert_id: UUID,
        *,
        delivered: bool,
        status_code: int | None,
        error: str | None,
    ) -> Alert | None:
        """Record the outcome of the single delivery attempt.

        The update only applies while no outcome has been recorded, so
        the delivery fields change at most once.  Returns None if an
        outcome was already present.
        """
        db = Database.get_instance()
        row = db.fetch_one(
            "UPDATE domain_challenge_alerts "
            "SET delivered = %s, delivery_status_code = %s, "
            "    delivery_error = %s, updated_at = now() "
            "WHERE id = %s "
            "  AND delivered = false "
            "  AND delivery_status_code IS NULL "
            "  AND delivery_error IS NULL "
            "RETURNING *",
            (delivered, status_code, error, alert_id),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    def find_by_challenge(self, challenge_id: UUID) -> list[Alert]:
        return self.find_by({"challenge_id": challenge_id})

    def find_undelivered(self, limit: int = 100) -> list[Alert]:
        """Return undelivered alerts, oldest first."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM domain_challenge_alerts "
            "WHERE delivered = false "
            "ORDER BY created_at ASC, id "
            "LIMIT %s",
            (limit,),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def count_undelivered(self) -> int:
        db = Database.get_instance()
        return (
            db.fetch_value(
                "SELECT COUNT(*) FROM domain_challenge_alerts WHERE delivered = false",
            )
            or 0
        )
