"""Tests for the in-process metrics collector."""

from __future__ import annotations

import threading

from domainproof.metrics.collector import MetricsCollector
from domainproof.services.verification import ChallengeSloMetrics


def test_increment_and_get():
    m = MetricsCollector()
    m.increment("domainproof_probes_total", labels={"method": "DNS_TXT", "outcome": "verified"})
    m.increment("domainproof_probes_total", 2, labels={"outcome": "verified", "method": "DNS_TXT"})
    assert m.get("domainproof_probes_total", {"method": "DNS_TXT", "outcome": "verified"}) == 3
    assert m.get("domainproof_probes_total", {"method": "HTTP", "outcome": "verified"}) == 0


def test_export_families():
    m = MetricsCollector()
    m.increment("domainproof_webhooks_total", labels={"result": "applied"})
    m.increment("domainproof_webhooks_total", labels={"result": "duplicate"})
    m.increment("domainproof_scheduler_ticks_total", labels={"result": "ok"})

    text = m.export()

    assert text.count("# TYPE domainproof_webhooks_total counter") == 1
    assert "# HELP domainproof_webhooks_total Provider webhook events by result" in text
    assert 'domainproof_webhooks_total{result="applied"} 1' in text
    assert 'domainproof_webhooks_total{result="duplicate"} 1' in text
    assert "# TYPE domainproof_uptime_seconds gauge" in text
    assert text.index("domainproof_scheduler_ticks_total") < text.index("domainproof_webhooks_total")


def test_record_slo_sets_gauges():
    m = MetricsCollector()
    m.record_slo(
        ChallengeSloMetrics(
            total_challenges=10,
            verified_count=6,
            failed_count=2,
            pending_count=2,
            exhausted_count=1,
            alert_count=3,
            undelivered_alerts=1,
            verification_rate=0.75,
        )
    )
    assert m.gauge("domainproof_challenges", {"status": "VERIFIED"}) == 6
    assert m.gauge("domainproof_challenges_exhausted") == 1
    text = m.export()
    assert 'domainproof_challenges{status="FAILED"} 2' in text
    assert "domainproof_verification_rate 0.75" in text


def test_concurrent_increments():
    m = MetricsCollector()

    def work():
        for _ in range(500):
            m.increment("domainproof_alerts_total")

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert m.get("domainproof_alerts_total") == 2000
