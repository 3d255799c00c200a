"""HTTP fetches for the HTTP method."""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol

from domainproof.challenge.base import ProbeError

log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "domainproof-verifier/1.0"


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: str


class HttpProbe(Protocol):
    def fetch(self, url: str) -> HttpResponse:
        """GET *url*.

        Non-2xx responses are returned, not raised.  Raises
        :class:`ProbeError` when no response could be obtained.
        """
        ...


class UrllibHttpProbe:
    """:class:`HttpProbe` backed by :mod:`urllib.request`.

    Reads at most *max_response_bytes* of the body and decodes it as
    UTF-8 (undecodable bytes replaced).
    """

    def __init__(
        self,
        timeout_seconds: float = 4,
        max_response_bytes: int = 4096,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._timeout = timeout_seconds
        self._max_bytes = max_response_bytes
        self._user_agent = user_agent

    def fetch(self, url: str) -> HttpResponse:
        req = urllib.request.Request(  # noqa: S310
            url,
            method="GET",
            headers={"User-Agent": self._user_agent},
        )
        try:
            resp = urllib.request.urlopen(req, timeout=self._timeout)  # noqa: S310
        except urllib.error.HTTPError as exc:
            body = exc.read(self._max_bytes) if exc.fp is not None else b""
            return HttpResponse(exc.code, body.decode("utf-8", errors="replace"))
        except (urllib.error.URLError, OSError) as exc:
            msg = f"could not fetch {url}: {exc}"
            raise ProbeError(msg) from exc

        try:
            with resp:
                body = resp.read(self._max_bytes)
        except OSError as exc:
            msg = f"error reading response body from {url}: {exc}"
            raise ProbeError(msg) from exc

        log.debug("GET %s -> %s (%d bytes)", url, resp.status, len(body))
        return HttpResponse(resp.status, body.decode("utf-8", errors="replace"))
