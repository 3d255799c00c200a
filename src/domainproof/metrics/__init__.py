"""Process-local counters exported at ``/metrics``."""

from domainproof.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
