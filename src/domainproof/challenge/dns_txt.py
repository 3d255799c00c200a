"""DNS_TXT method handler.

The tenant publishes ``<record_prefix>.<domain>`` as a TXT record
whose value is ``<value_prefix>=<token>``.  A probe succeeds when any
TXT string at that name equals the expected value exactly.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from domainproof.challenge.base import (
    ChallengeMethodHandler,
    ChallengeTarget,
    ProbeError,
    ProbeResult,
)
from domainproof.core.types import ChallengeMethod

if TYPE_CHECKING:
    from domainproof.config.settings import DnsTxtSettings
    from domainproof.integrations.dns_probe import DnsProbe
    from domainproof.models.challenge import Challenge

log = logging.getLogger(__name__)

DEFAULT_RECORD_PREFIX = "_domainproof-challenge"
DEFAULT_VALUE_PREFIX = "domainproof-verification"


class DnsTxtHandler(ChallengeMethodHandler):
    """Handler for :attr:`ChallengeMethod.DNS_TXT`."""

    method = ChallengeMethod.DNS_TXT

    def __init__(
        self,
        settings: DnsTxtSettings | None = None,
        *,
        probe: DnsProbe | None = None,
    ) -> None:
        super().__init__(settings=settings)
        self._probe = probe

    @property
    def record_prefix(self) -> str:
        return getattr(self.settings, "record_prefix", DEFAULT_RECORD_PREFIX)

    @property
    def value_prefix(self) -> str:
        return getattr(self.settings, "value_prefix", DEFAULT_VALUE_PREFIX)

    def build_target(self, domain: str, token: str) -> ChallengeTarget:
        return ChallengeTarget(
            txt_record_name=f"{self.record_prefix}.{domain}",
            expected_value=f"{self.value_prefix}={token}",
        )

    def describe_instructions(self, challenge: Challenge, domain: str) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "domain": domain,
            "record_type": "TXT",
            "record_name": challenge.txt_record_name,
            "record_value": challenge.expected_value,
        }

    def probe(self, challenge: Challenge, domain: str) -> ProbeResult:
        if self._probe is None:
            msg = "No DNS probe configured"
            raise ProbeError(msg, retryable=False)

        record_name = challenge.txt_record_name or f"{self.record_prefix}.{domain}"
        values = self._probe.query_txt(record_name)

        if challenge.expected_value in values:
            log.info("DNS_TXT match for %s at %s", domain, record_name)
            return ProbeResult(matched=True, target=record_name, observed=values)

        return ProbeResult(
            matched=False,
            target=record_name,
            observed=values,
            detail=(
                f"no TXT record at {record_name} matches the expected value; "
                f"found {len(values)} record(s)"
            ),
        )
