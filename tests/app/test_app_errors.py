"""Tests for RFC 7807 error rendering."""

from __future__ import annotations

from flask import Flask

from domainproof.app.errors import PROBLEM_CONTENT_TYPE, Problem, register_error_handlers
from domainproof.core.errors import MALFORMED, NotFoundError, ValidationError


def _make_app() -> Flask:
    app = Flask(__name__)
    app.config["TESTING"] = True
    register_error_handlers(app)

    @app.route("/problem")
    def problem():
        raise Problem(MALFORMED, "Request body is not valid JSON", 422, title="Bad body")

    @app.route("/not-found")
    def not_found():
        raise NotFoundError("Challenge x not found")

    @app.route("/invalid")
    def invalid():
        raise ValidationError("Malformed webhook payload", errors=["status: bad"])

    @app.route("/boom")
    def boom():
        msg = "db-password-leak"
        raise RuntimeError(msg)

    return app


def test_problem_response():
    resp = _make_app().test_client().get("/problem")
    assert resp.status_code == 422
    assert resp.headers["Content-Type"] == PROBLEM_CONTENT_TYPE
    assert resp.get_json() == {
        "type": MALFORMED,
        "detail": "Request body is not valid JSON",
        "status": 422,
        "title": "Bad body",
        "instance": "/problem",
    }


def test_domain_error_maps_status_and_type():
    body = _make_app().test_client().get("/not-found").get_json()
    assert body["status"] == 404
    assert body["type"] == "urn:domainproof:error:notFound"


def test_validation_errors_included():
    body = _make_app().test_client().get("/invalid").get_json()
    assert body["errors"] == ["status: bad"]


def test_unknown_route_is_about_blank():
    resp = _make_app().test_client().get("/nope")
    assert resp.status_code == 404
    assert resp.get_json()["type"] == "about:blank"


def test_unhandled_exception_hides_detail(caplog):
    resp = _make_app().test_client().get("/boom")
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["type"] == "urn:domainproof:error:serverInternal"
    assert "db-password-leak" not in body["detail"]
    assert "Unhandled exception" in caplog.text


def test_request_id_included_when_hooks_registered():
    from domainproof.app.middleware import register_request_hooks

    app = _make_app()
    register_request_hooks(app)
    body = app.test_client().get("/not-found", headers={"X-Request-ID": "req-77"}).get_json()
    assert body["requestId"] == "req-77"
    assert body["instance"] == "/not-found"
