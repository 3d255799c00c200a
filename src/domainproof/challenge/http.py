"""HTTP method handler.

The tenant serves ``<expected_value>`` at
``<scheme>://<domain>[:port]<path_prefix>/<token>``.  The expected
value binds the token to the domain:
``<token>.<base64url(sha256("<domain>:<token>"))>``.  A probe succeeds
on a 2xx response whose body, stripped of surrounding whitespace,
equals the expected value.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from typing import TYPE_CHECKING, Any

from domainproof.challenge.base import (
    ChallengeMethodHandler,
    ChallengeTarget,
    ProbeError,
    ProbeResult,
)
from domainproof.core.blobs import body_excerpt
from domainproof.core.types import ChallengeMethod

if TYPE_CHECKING:
    from domainproof.config.settings import HttpSettings
    from domainproof.integrations.http_probe import HttpProbe
    from domainproof.models.challenge import Challenge

log = logging.getLogger(__name__)

DEFAULT_PATH_PREFIX = "/.well-known/domainproof"


def expected_http_value(domain: str, token: str) -> str:
    digest = hashlib.sha256(f"{domain}:{token}".encode()).digest()
    thumb = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return f"{token}.{thumb}"


class HttpHandler(ChallengeMethodHandler):
    """Handler for :attr:`ChallengeMethod.HTTP`."""

    method = ChallengeMethod.HTTP

    def __init__(
        self,
        settings: HttpSettings | None = None,
        *,
        probe: HttpProbe | None = None,
    ) -> None:
        super().__init__(settings=settings)
        self._probe = probe

    def build_target(self, domain: str, token: str) -> ChallengeTarget:
        prefix = getattr(self.settings, "path_prefix", DEFAULT_PATH_PREFIX).rstrip("/")
        return ChallengeTarget(
            http_path=f"{prefix}/{token}",
            expected_value=expected_http_value(domain, token),
        )

    def url_for(self, challenge: Challenge, domain: str) -> str:
        scheme = getattr(self.settings, "scheme", "http")
        port = getattr(self.settings, "port", 80)
        default_port = 443 if scheme == "https" else 80
        host = domain if port == default_port else f"{domain}:{port}"
        return f"{scheme}://{host}{challenge.http_path}"

    def describe_instructions(self, challenge: Challenge, domain: str) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "domain": domain,
            "url": self.url_for(challenge, domain),
            "path": challenge.http_path,
            "content_type": "text/plain",
            "body": challenge.expected_value,
        }

    def probe(self, challenge: Challenge, domain: str) -> ProbeResult:
        if self._probe is None:
            msg = "No HTTP probe configured"
            raise ProbeError(msg, retryable=False)

        url = self.url_for(challenge, domain)
        response = self._probe.fetch(url)
        observed = {
            "status_code": response.status_code,
            "body_excerpt": body_excerpt(response.body),
        }

        if not 200 <= response.status_code < 300:
            return ProbeResult(
                matched=False,
                target=url,
                observed=observed,
                detail=f"server returned HTTP {response.status_code} for {url}",
            )

        body = response.body.strip()
        expected = challenge.expected_value or ""
        if secrets.compare_digest(body.encode(), expected.encode()):
            log.info("HTTP match for %s at %s", domain, url)
            return ProbeResult(matched=True, target=url, observed=observed)

        return ProbeResult(
            matched=False,
            target=url,
            observed=observed,
            detail=f"response body at {url} does not match the expected value",
        )
