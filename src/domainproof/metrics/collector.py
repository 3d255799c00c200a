"""In-process counters and gauges with Prometheus text export.

Counters are bumped by the services as things happen; gauges are set
just before export from the current database state.  Series are keyed
by metric name plus a sorted label tuple.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from domainproof.services.verification import ChallengeSloMetrics

Labels = tuple[tuple[str, str], ...]

HELP: dict[str, str] = {
    "domainproof_probes_total": "Probe attempts by method and outcome",
    "domainproof_webhooks_total": "Provider webhook events by result",
    "domainproof_alerts_total": "Alerts raised by severity and delivery outcome",
    "domainproof_scheduler_ticks_total": "Scheduler ticks by result",
    "domainproof_http_requests_total": "HTTP requests by method, route and status",
    "domainproof_challenges": "Challenges by status",
    "domainproof_challenges_exhausted": "Failed challenges that used every attempt",
    "domainproof_alerts_undelivered": "Alerts whose single delivery attempt did not succeed",
    "domainproof_verification_rate": "Verified share of terminal challenges",
    "domainproof_uptime_seconds": "Seconds since the collector was created",
}


def _labels(labels: Mapping[str, object] | None) -> Labels:
    if not labels:
        return ()
    return tuple(sorted((k, str(v)) for k, v in labels.items()))


def _series(name: str, labels: Labels) -> str:
    if not labels:
        return name
    inner = ",".join(f'{k}="{v}"' for k, v in labels)
    return f"{name}{{{inner}}}"


class MetricsCollector:
    """Thread-safe store shared by the services of one process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[tuple[str, Labels], int] = {}
        self._gauges: dict[tuple[str, Labels], float] = {}
        self._started = time.monotonic()

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = (name, _labels(labels))
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def get(self, name: str, labels: dict | None = None) -> int:
        with self._lock:
            return self._counters.get((name, _labels(labels)), 0)

    def set_gauge(self, name: str, value: float, labels: dict | None = None) -> None:
        with self._lock:
            self._gauges[(name, _labels(labels))] = float(value)

    def gauge(self, name: str, labels: dict | None = None) -> float | None:
        with self._lock:
            return self._gauges.get((name, _labels(labels)))

    def record_slo(self, slo: ChallengeSloMetrics) -> None:
        """Set the challenge and alert gauges from an SLO summary."""
        for status, count in (
            ("ISSUED", slo.pending_count),
            ("VERIFIED", slo.verified_count),
            ("FAILED", slo.failed_count),
        ):
            self.set_gauge("domainproof_challenges", count, {"status": status})
        self.set_gauge("domainproof_challenges_exhausted", slo.exhausted_count)
        self.set_gauge("domainproof_alerts_undelivered", slo.undelivered_alerts)
        self.set_gauge("domainproof_verification_rate", slo.verification_rate)

    def export(self) -> str:
        """Render every series in Prometheus text exposition format."""
        self.set_gauge("domainproof_uptime_seconds", round(time.monotonic() - self._started, 1))
        with self._lock:
            families: dict[str, tuple[str, list[str]]] = {}
            for (name, labels), value in self._gauges.items():
                families.setdefault(name, ("gauge", []))[1].append(
                    f"{_series(name, labels)} {value:g}"
                )
            for (name, labels), value in self._counters.items():
                families.setdefault(name, ("counter", []))[1].append(
                    f"{_series(name, labels)} {value}"
                )

        out: list[str] = []
        for name in sorted(families):
            kind, samples = families[name]
            if name in HELP:
                out.append(f"# HELP {name} {HELP[name]}")
            out.append(f"# TYPE {name} {kind}")
            out.extend(sorted(samples))
        return "\n".join(out) + "\n"
