"""DNS TXT lookups for the DNS_TXT method."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import dns.exception
import dns.resolver

from domainproof.challenge.base import ProbeError

log = logging.getLogger(__name__)


class DnsProbe(Protocol):
    def query_txt(self, record_name: str) -> list[str]:
        """Return every TXT string published at *record_name*.

        Raises :class:`ProbeError` when the lookup fails.
        """
        ...


class DnsPythonProbe:
    """:class:`DnsProbe` backed by a dnspython resolver.

    Parameters
    ----------
    resolvers:
        Nameserver addresses; the system resolver is used when empty.
    timeout_seconds:
        Total lifetime of one lookup.

    """

    def __init__(
        self,
        resolvers: Sequence[str] = (),
        timeout_seconds: float = 5,
    ) -> None:
        self._resolvers = list(resolvers)
        self._timeout = timeout_seconds

    def _resolver(self) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver()
        if self._resolvers:
            resolver.nameservers = list(self._resolvers)
        resolver.lifetime = self._timeout
        return resolver

    def query_txt(self, record_name: str) -> list[str]:
        try:
            answer = self._resolver().resolve(record_name, "TXT")
        except dns.resolver.NXDOMAIN as exc:
            msg = f"{record_name} does not exist (NXDOMAIN); record may not have propagated yet"
            raise ProbeError(msg) from exc
        except dns.resolver.NoAnswer as exc:
            msg = f"{record_name} has no TXT records; record may not have propagated yet"
            raise ProbeError(msg) from exc
        except dns.resolver.NoNameservers as exc:
            msg = f"no nameservers available for {record_name} (SERVFAIL or all refused)"
            raise ProbeError(msg) from exc
        except dns.exception.Timeout as exc:
            msg = f"DNS query for {record_name} timed out after {self._timeout}s"
            raise ProbeError(msg) from exc
        except dns.exception.DNSException as exc:
            msg = f"DNS error querying {record_name}: {exc}"
            raise ProbeError(msg) from exc

        # TXT rdata carries a tuple of byte segments; concatenate them.
        values = [b"".join(rdata.strings).decode("utf-8", errors="replace") for rdata in answer]
        log.debug("TXT %s -> %d record(s)", record_name, len(values))
        return values
