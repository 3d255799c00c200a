"""Per-request hooks: request ids, access log lines and request counters.

Request ids supplied by a caller in ``X-Request-ID`` are kept when they
look like ids (short, printable, no spaces); anything else is replaced
so the value can be logged and echoed safely.  Health probes are logged
at DEBUG because orchestrators poll them every few seconds.
"""

from __future__ import annotations

import logging
import re
import time
from uuid import uuid4

from flask import Flask, g, request

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_PROBE_PATHS = frozenset({"/livez", "/readyz"})

access_log = logging.getLogger("domainproof.access")


def _request_id() -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    if _REQUEST_ID_RE.match(supplied):
        return supplied
    return uuid4().hex


def _access_level(path: str, status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    if path in _PROBE_PATHS:
        return logging.DEBUG
    return logging.INFO


def register_request_hooks(app: Flask) -> None:
    """Attach the before/after request hooks to *app*."""

    @app.before_request
    def _start() -> None:
        g.request_id = _request_id()
        g.started = time.perf_counter()

    @app.after_request
    def _finish(response):
        response.headers[REQUEST_ID_HEADER] = g.get("request_id") or uuid4().hex
        response.headers.setdefault("X-Content-Type-Options", "nosniff")

        elapsed_ms = (time.perf_counter() - g.get("started", time.perf_counter())) * 1000
        route = request.url_rule.rule if request.url_rule is not None else "unmatched"

        container = app.extensions.get("container")
        metrics = getattr(container, "metrics", None)
        if metrics is not None:
            metrics.increment(
                "domainproof_http_requests_total",
                labels={
                    "method": request.method,
                    "route": route,
                    "status": str(response.status_code),
                },
            )

        access_log.log(
            _access_level(request.path, response.status_code),
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.path,
            response.status_code,
            elapsed_ms,
            extra={
                "route": route,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 1),
            },
        )
        return response
