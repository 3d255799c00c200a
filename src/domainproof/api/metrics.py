"""``GET /metrics``: Prometheus scrape endpoint.

Mounted at ``metrics.path`` when ``metrics.enabled`` is true.  Counters
come from the running process; challenge and alert gauges are refreshed
from the database on every scrape.  A failed refresh still returns the
counters.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response

from domainproof.app.context import get_container

log = logging.getLogger(__name__)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("", methods=["GET"])
def scrape():
    container = get_container()
    try:
        container.metrics.record_slo(container.verification.slo_metrics())
    except Exception:
        log.warning("Could not refresh challenge gauges for /metrics", exc_info=True)
    return Response(container.metrics.export(), content_type=PROMETHEUS_CONTENT_TYPE)
