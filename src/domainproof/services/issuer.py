"""Challenge issuer.

Creates a challenge for a domain mapping with a fresh random token and
the method's proof target.  At most one non-terminal challenge exists
per mapping and method; a second request gets the existing one back
(or a conflict, when the caller opts out of reuse).
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from domainproof.core.clock import SystemClock
from domainproof.core.errors import ConflictError, NotFoundError, ValidationError
from domainproof.core.types import ChallengeMethod, ChallengeStatus, PropagationState
from domainproof.models.challenge import DEFAULT_MAX_ATTEMPTS, Challenge

if TYPE_CHECKING:
    from uuid import UUID

    from domainproof.challenge.registry import MethodRegistry
    from domainproof.core.clock import Clock
    from domainproof.integrations.mapping_registry import MappingRegistry
    from domainproof.repositories.challenge import ChallengeRepository

log = logging.getLogger(__name__)

_TOKEN_BYTES = 32
_ATTACH_ATTEMPTS = 3


@dataclass(frozen=True)
class IssueResult:
    challenge: Challenge
    created: bool
    instructions: dict[str, Any]


def parse_method(value: str | ChallengeMethod) -> ChallengeMethod:
    """Coerce *value* to a :class:`ChallengeMethod` or raise ``ValidationError``."""
    if isinstance(value, ChallengeMethod):
        return value
    try:
        return ChallengeMethod(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in ChallengeMethod)
        msg = f"Unknown challenge method {value!r}; expected one of {allowed}"
        raise ValidationError(msg) from None


class ChallengeIssuer:
    """Issues verification challenges.

    Parameters
    ----------
    challenge_repo:
        Challenge persistence.
    mappings:
        Resolves mapping ids to hostnames.
    registry:
        Enabled method handlers.
    max_attempts:
        Attempt budget stamped on new challenges.

    """

    def __init__(
        self,
        challenge_repo: ChallengeRepository,
        mappings: MappingRegistry,
        registry: MethodRegistry,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Clock | None = None,
    ) -> None:
        self._challenges = challenge_repo
        self._mappings = mappings
        self._registry = registry
        self._max_attempts = max_attempts
        self._clock = clock or SystemClock()

    def issue(
        self,
        domain_mapping_id: UUID,
        method: str | ChallengeMethod,
        *,
        provider: str | None = None,
        provider_reference_id: str | None = None,
        reuse_existing: bool = True,
    ) -> IssueResult:
        """Issue a challenge, or return the active one.

        Raises
        ------
        NotFoundError
            The mapping does not exist.
        ValidationError
            The method is unknown or not enabled.
        ConflictError
            An active challenge exists and *reuse_existing* is False, or
            it is tracked under a different provider reference.

        """
        method = parse_method(method)
        if not self._registry.is_enabled(method):
            msg = f"Challenge method {method.value} is not enabled"
            raise ValidationError(msg)

        mapping = self._mappings.lookup(domain_mapping_id)
        if mapping is None:
            msg = f"Domain mapping {domain_mapping_id} not found"
            raise NotFoundError(msg)

        if provider_reference_id:
            self._check_reference_free(provider_reference_id, mapping.id, method)

        handler = self._registry.get_handler(method)
        try:
            challenge = self._create(
                mapping.id,
                mapping.domain,
                method,
                handler,
                provider,
                provider_reference_id,
            )
            created = True
        except ConflictError as exc:
            if not reuse_existing:
                raise
            log.info(
                "Reusing active %s challenge %s for mapping %s",
                method.value,
                exc.existing.id,
                mapping.id,
            )
            challenge = self._adopt_reference(exc.existing, provider, provider_reference_id)
            created = False

        return IssueResult(
            challenge=challenge,
            created=created,
            instructions=handler.describe_instructions(challenge, mapping.domain),
        )

    def _check_reference_free(
        self,
        provider_reference_id: str,
        mapping_id: UUID,
        method: ChallengeMethod,
    ) -> None:
        holder = self._challenges.find_by_provider_reference(provider_reference_id)
        if holder is None or holder.status != ChallengeStatus.ISSUED:
            return
        if (holder.domain_mapping_id, holder.method) != (mapping_id, method):
            msg = (
                f"Provider reference {provider_reference_id!r} is already in use "
                "by another active challenge"
            )
            raise ValidationError(msg)

    def _adopt_reference(
        self,
        existing: Challenge,
        provider: str | None,
        provider_reference_id: str | None,
    ) -> Challenge:
        """Attach the caller's provider reference to a reused challenge.

        A challenge carries at most one reference; asking to track it
        under another one is a conflict.
        """
        if not provider_reference_id or existing.provider_reference_id == provider_reference_id:
            return existing
        if existing.provider_reference_id is not None:
            raise ConflictError(
                f"Active challenge {existing.id} is tracked under provider reference "
                f"{existing.provider_reference_id!r}",
                existing,
            )

        current = existing
        for _ in range(_ATTACH_ATTEMPTS):
            updated = self._challenges.attach_provider(
                current.id,
                current.version,
                provider,
                provider_reference_id,
            )
            if updated is not None:
                log.info(
                    "Attached provider reference %r to challenge %s",
                    provider_reference_id,
                    updated.id,
                )
                return updated

            # Lost to a concurrent writer; look again.
            current = self._challenges.find_by_id(existing.id) or current
            if current.status != ChallengeStatus.ISSUED:
                break
            if current.provider_reference_id == provider_reference_id:
                return current
            if current.provider_reference_id is not None:
                break

        raise ConflictError(
            f"Active challenge {existing.id} changed while attaching provider reference",
            current,
        )

    def _create(  # noqa: PLR0913
        self,
        mapping_id: UUID,
        domain: str,
        method: ChallengeMethod,
        handler,
        provider: str | None,
        provider_reference_id: str | None,
    ) -> Challenge:
        existing = self._challenges.find_active(mapping_id, method)
        if existing is not None:
            raise ConflictError(
                f"An active {method.value} challenge already exists for mapping {mapping_id}",
                existing,
            )

        token = secrets.token_urlsafe(_TOKEN_BYTES)
        target = handler.build_target(domain, token)
        now = self._clock.now()
        candidate = Challenge(
            id=uuid.uuid4(),
            domain_mapping_id=mapping_id,
            method=method,
            token=token,
            status=ChallengeStatus.ISSUED,
            txt_record_name=target.txt_record_name,
            http_path=target.http_path,
            expected_value=target.expected_value,
            provider=provider,
            provider_reference_id=provider_reference_id,
            propagation_state=PropagationState.PENDING,
            attempt_count=0,
            max_attempts=self._max_attempts,
            next_attempt_at=now,
            created_at=now,
            updated_at=now,
        )

        inserted = self._challenges.create_if_absent(candidate)
        if inserted is None:
            # Lost the race to a concurrent issuer.
            winner = self._challenges.find_active(mapping_id, method)
            if winner is None:
                msg = f"Concurrent issuance for mapping {mapping_id} left no active challenge"
                raise RuntimeError(msg)
            raise ConflictError(
                f"An active {method.value} challenge already exists for mapping {mapping_id}",
                winner,
            )

        log.info(
            "Issued %s challenge %s for %s (mapping %s)",
            method.value,
            inserted.id,
            domain,
            mapping_id,
            extra={"challenge_id": str(inserted.id), "challenge_method": method.value},
        )
        return inserted
