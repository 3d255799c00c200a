"""Challenge repository."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from domainproof.core.types import (
    ChallengeMethod,
    ChallengeStatus,
    PropagationState,
)
from domainproof.models.challenge import Challenge

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

# Columns the prober, webhook ingestor and scheduler may change after
# creation.  Identity and proof-target columns are fixed at issuance.
MUTABLE_COLUMNS = frozenset(
    {
        "status",
        "propagation_state",
        "attempt_count",
        "next_attempt_at",
        "last_attempt_at",
        "last_event_at",
        "proof",
        "last_error",
        "verified_at",
    }
)


class ChallengeRepository(BaseRepository[Challenge]):
    table_name = "domain_verification_challenges"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Challenge:
        return Challenge(
            id=row["id"],
            domain_mapping_id=row["domain_mapping_id"],
            method=ChallengeMethod(row["method"]),
            token=row["token"],
            status=ChallengeStatus(row["status"]),
            txt_record_name=row.get("txt_record_name"),
            http_path=row.get("http_path"),
            expected_value=row.get("expected_value"),
            provider=row.get("provider"),
            provider_reference_id=row.get("provider_reference_id"),
            propagation_state=PropagationState(row["propagation_state"]),
            attempt_count=row["attempt_count"],
            max_attempts=row["max_attempts"],
            next_attempt_at=row.get("next_attempt_at"),
            last_attempt_at=row.get("last_attempt_at"),
            last_event_at=row.get("last_event_at"),
            proof=row.get("proof"),
            last_error=row.get("last_error"),
            verified_at=row.get("verified_at"),
            version=row["version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Challenge) -> dict:
        return {
            "id": entity.id,
            "domain_mapping_id": entity.domain_mapping_id,
            "method": entity.method.value,
            "token": entity.token,
            "status": entity.status.value,
            "txt_record_name": entity.txt_record_name,
            "http_path": entity.http_path,
            "expected_value": entity.expected_value,
            "provider": entity.provider,
            "provider_reference_id": entity.provider_reference_id,
            "propagation_state": entity.propagation_state.value,
            "attempt_count": entity.attempt_count,
            "max_attempts": entity.max_attempts,
            "next_attempt_at": entity.next_attempt_at,
            "last_attempt_at": entity.last_attempt_at,
            "last_event_at": entity.last_event_at,
            "proof": Jsonb(entity.proof) if entity.proof is not None else None,
            "last_error": entity.last_error,
            "verified_at": entity.verified_at,
            "version": entity.version,
        }

    def create_if_absent(self, entity: Challenge) -> Challenge | None:
        """Insert *entity* unless an active challenge already holds its slot.

        The partial unique index on ``(domain_mapping_id, method)
        WHERE status = 'ISSUED'`` arbitrates concurrent issuers.

        Returns the inserted challenge, or None if another active
        challenge for the same mapping and method exists.
        """
        db = Database.get_instance()
        row = self._entity_to_row(entity)
        columns = ", ".join(row)
        placeholders = ", ".join("%s" for _ in row)
        result = db.fetch_one(
            f"INSERT INTO domain_verification_challenges ({columns}) "  # noqa: S608
            f"VALUES ({placeholders}) "
            "ON CONFLICT (domain_mapping_id, method) "
            "  WHERE status = 'ISSUED' DO NOTHING "
            "RETURNING *",
            tuple(row.values()),
            as_dict=True,
        )
        return self._row_to_entity(result) if result else None

    def find_active(
        self,
        domain_mapping_id: UUID,
        method: ChallengeMethod,
    ) -> Challenge | None:
        """Return the non-terminal challenge for a mapping and method, if any."""
        return self.find_one_by(
            {
                "domain_mapping_id": domain_mapping_id,
                "method": method.value,
                "status": ChallengeStatus.ISSUED.value,
            }
        )

    def find_by_mapping(self, domain_mapping_id: UUID) -> list[Challenge]:
        """Return every challenge issued for a mapping, newest first."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM domain_verification_challenges "
            "WHERE domain_mapping_id = %s "
            "ORDER BY created_at DESC, id",
            (domain_mapping_id,),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def find_by_provider_reference(
        self,
        provider_reference_id: str,
    ) -> Challenge | None:
        """Return the challenge a provider reference addresses.

        The active challenge wins; otherwise the most recent finished
        one, so a late webhook is acknowledged rather than 404'd.
        """
        db = Database.get_instance()
        row = db.fetch_one(
            "SELECT * FROM domain_verification_challenges "
            "WHERE provider_reference_id = %s "
            "ORDER BY (status = %s) DESC, created_at DESC, id "
            "LIMIT 1",
            (provider_reference_id, ChallengeStatus.ISSUED.value),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    def attach_provider(
        self,
        challenge_id: UUID,
        expected_version: int,
        provider: str | None,
        provider_reference_id: str,
    ) -> Challenge | None:
        """Set the provider reference on an active challenge that has none.

        Guarded by *expected_version* like :meth:`compare_and_set`.
        Returns None if the row moved on, finished, or already carries a
        reference.
        """
        db = Database.get_instance()
        row = db.fetch_one(
            "UPDATE domain_verification_challenges "
            "SET provider = COALESCE(%s, provider), provider_reference_id = %s, "
            "    version = version + 1, updated_at = now() "
            "WHERE id = %s AND version = %s AND status = %s "
            "  AND provider_reference_id IS NULL "
            "RETURNING *",
            (
                provider,
                provider_reference_id,
                challenge_id,
                expected_version,
                ChallengeStatus.ISSUED.value,
            ),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    def find_due(self, now: datetime, batch_size: int) -> list[Challenge]:
        """Return challenges eligible for a probe attempt at *now*.

        Eligible means ``ISSUED``, not yet ``READY``, due, and with
        attempts remaining.  Ordered by due time then id so selection
        is deterministic.
        """
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM domain_verification_challenges "
            "WHERE status = %s "
            "  AND propagation_state <> %s "
            "  AND next_attempt_at IS NOT NULL "
            "  AND next_attempt_at <= %s "
            "  AND attempt_count < max_attempts "
            "ORDER BY next_attempt_at ASC, id ASC "
            "LIMIT %s",
            (
                ChallengeStatus.ISSUED.value,
                PropagationState.READY.value,
                now,
                batch_size,
            ),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def compare_and_set(
        self,
        challenge_id: UUID,
        expected_version: int,
        changes: dict[str, Any],
    ) -> Challenge | None:
        """Apply *changes* only if the row is still at *expected_version*.

        Bumps ``version`` on success.  Returns the updated challenge,
        or None if another writer committed first.
        """
        unknown = set(changes) - MUTABLE_COLUMNS
        if unknown:
            msg = f"Columns not updatable: {sorted(unknown)}"
            raise ValueError(msg)

        assignments: list[str] = []
        params: list[Any] = []
        for column, value in changes.items():
            assignments.append(f"{column} = %s")
            if column == "proof" and value is not None:
                value = Jsonb(value)
            elif hasattr(value, "value"):
                value = value.value
            params.append(value)
        assignments.append("version = version + 1")
        assignments.append("updated_at = now()")

        db = Database.get_instance()
        row = db.fetch_one(
            f"UPDATE domain_verification_challenges SET {', '.join(assignments)} "  # noqa: S608
            "WHERE id = %s AND version = %s "
            "RETURNING *",
            (*params, challenge_id, expected_version),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    def count_by_status(self) -> dict[str, int]:
        """Return ``{status: count}`` for every status present."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT status, COUNT(*) AS n FROM domain_verification_challenges GROUP BY status",
            as_dict=True,
        )
        return {r["status"]: r["n"] for r in rows}

    def count_exhausted(self) -> int:
        db = Database.get_instance()
        return (
            db.fetch_value(
                "SELECT COUNT(*) FROM domain_verification_challenges "
                "WHERE status = %s AND attempt_count >= max_attempts",
                (ChallengeStatus.FAILED.value,),
            )
            or 0
        )
