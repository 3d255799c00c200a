"""Log formatting for domainproof.

Two kinds of context end up on log records:

* the HTTP request being served (request id, client address, route),
  taken from Flask ``g``/``request``;
* the challenge being worked on, bound with :func:`challenge_context`
  by the prober and the webhook ingestor.  Scheduler threads have no
  request, so this is what ties their log lines to a challenge.

:func:`configure_logging` installs one stderr handler on the
``domainproof`` logger with either the JSON-lines or the text format.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from flask import g, has_request_context, request

if TYPE_CHECKING:
    from collections.abc import Iterator
    from uuid import UUID

    from domainproof.config.settings import LoggingSettings

_challenge_ctx: contextvars.ContextVar[dict[str, str] | None] = contextvars.ContextVar(
    "domainproof_challenge",
    default=None,
)

_REQUEST_FIELDS = ("request_id", "client_ip", "http_method", "path")
_CHALLENGE_FIELDS = ("challenge_id", "mapping_id", "challenge_method")

# Everything a bare LogRecord carries; other attributes came in via extra=.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = ("werkzeug", "gunicorn.error", "gunicorn.access", "urllib3")


@contextlib.contextmanager
def challenge_context(
    challenge_id: UUID,
    mapping_id: UUID | None = None,
    method: str | None = None,
) -> Iterator[None]:
    """Tag log records emitted in this block with the challenge."""
    bound = {"challenge_id": str(challenge_id)}
    if mapping_id is not None:
        bound["mapping_id"] = str(mapping_id)
    if method is not None:
        bound["challenge_method"] = method
    token = _challenge_ctx.set(bound)
    try:
        yield
    finally:
        _challenge_ctx.reset(token)


class ContextFilter(logging.Filter):
    """Copy request and challenge context onto each record.

    Attributes passed explicitly through ``extra=`` win over the bound
    context.  Records outside a request get ``request_id="-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if has_request_context():
            _setdefault(record, "request_id", getattr(g, "request_id", "-"))
            _setdefault(record, "client_ip", request.remote_addr)
            _setdefault(record, "http_method", request.method)
            _setdefault(record, "path", request.path)
        else:
            _setdefault(record, "request_id", "-")

        for key, value in (_challenge_ctx.get() or {}).items():
            _setdefault(record, key, value)
        return True


def _setdefault(record: logging.LogRecord, name: str, value: object) -> None:
    if getattr(record, name, None) is None:
        setattr(record, name, value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Request fields sit under ``"request"``, challenge fields under
    ``"challenge"``; any remaining ``extra=`` attributes are top-level.
    """

    def format(self, record: logging.LogRecord) -> str:
        doc: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        req = _collect(record, _REQUEST_FIELDS)
        if req.get("request_id") == "-":
            del req["request_id"]
        if req:
            doc["request"] = req
        ch = _collect(record, _CHALLENGE_FIELDS)
        if ch:
            doc["challenge"] = {k.removeprefix("challenge_"): v for k, v in ch.items()}

        for key, value in record.__dict__.items():
            if (
                key in _RECORD_ATTRS
                or key in _REQUEST_FIELDS
                or key in _CHALLENGE_FIELDS
                or key.startswith("_")
            ):
                continue
            doc.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            doc["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            doc["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(doc, default=str)


def _collect(record: logging.LogRecord, fields: tuple[str, ...]) -> dict:
    found = {}
    for name in fields:
        value = getattr(record, name, None)
        if value is not None:
            found[name] = value
    return found


class TextFormatter(logging.Formatter):
    """Console format: ``time level [request] logger: message (challenge)``."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, "request_id", None) is None:
            record.request_id = "-"  # type: ignore[attr-defined]
        line = super().format(record)
        challenge_id = getattr(record, "challenge_id", None)
        if challenge_id is not None:
            line = f"{line} (challenge={challenge_id})"
        return line


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Point the ``domainproof`` logger at stderr using *settings*.

    Bootstrap handlers are replaced and propagation to the root logger
    is turned off.  Returns the ``domainproof`` logger.
    """
    logger = logging.getLogger("domainproof")
    logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter() if settings.format == "json" else TextFormatter())
    handler.addFilter(ContextFilter())
    logger.addHandler(handler)

    # Access lines are INFO even when the service runs at WARNING.
    logging.getLogger("domainproof.access").setLevel(logging.INFO)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger
