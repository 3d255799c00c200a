"""RFC 7807 Problem Details rendering.

Provides :class:`Problem`, an exception that renders itself as an
``application/problem+json`` response, and the Flask error-handler
registration that maps :class:`DomainProofError` subclasses, werkzeug
HTTP errors and unexpected exceptions onto it.

Usage::

    raise Problem(MALFORMED, "Request body is not valid JSON", 422)
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, g, has_request_context, jsonify, request
from werkzeug.exceptions import HTTPException

from domainproof.core.errors import SERVER_INTERNAL, DomainProofError

log = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"


class Problem(Exception):
    """An RFC 7807 *problem details* object that doubles as an exception.

    Parameters
    ----------
    error_type:
        A URN from :mod:`domainproof.core.errors` or ``"about:blank"``.
    detail:
        Human-readable explanation of the problem.
    status:
        HTTP status code (default 400).
    title:
        Short summary.
    extra:
        Additional members merged into the document.

    """

    def __init__(
        self,
        error_type: str,
        detail: str,
        status: int = 400,
        *,
        title: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.error_type = error_type
        self.detail = detail
        self.status = status
        self.title = title
        self.extra = extra or {}
        super().__init__(detail)

    @classmethod
    def from_error(cls, exc: DomainProofError) -> Problem:
        return cls(exc.error_type, exc.detail, exc.status, extra=exc.extra)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": self.error_type,
            "detail": self.detail,
            "status": self.status,
        }
        if self.title is not None:
            body["title"] = self.title
        for key, value in self.extra.items():
            body.setdefault(key, value)
        if has_request_context():
            body.setdefault("instance", request.path)
            request_id = g.get("request_id")
            if request_id:
                body.setdefault("requestId", request_id)
        return body

    def to_response(self):
        resp = jsonify(self.to_dict())
        resp.status_code = self.status
        resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
        resp.headers["Cache-Control"] = "no-store"
        return resp


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce RFC 7807 responses for all errors."""

    @app.errorhandler(Problem)
    def _handle_problem(exc: Problem):
        return exc.to_response()

    @app.errorhandler(DomainProofError)
    def _handle_domain_error(exc: DomainProofError):
        if exc.status >= 500:
            log.error("Request failed: %s", exc.detail)
        return Problem.from_error(exc).to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        problem = Problem(
            "about:blank",
            exc.description or "An error occurred",
            exc.code or 500,
            title=exc.name,
        )
        return problem.to_response()

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):
        log.exception("Unhandled exception during request")
        problem = Problem(
            SERVER_INTERNAL,
            "An unexpected internal error occurred",
            500,
        )
        return problem.to_response()
